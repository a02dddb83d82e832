import uuid
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Enum as SAEnum, ForeignKey, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from examforge.db.base import Base
from examforge.services.session_status import IntentKind, LifecycleOverride


class ExamSession(Base):
    __tablename__ = "exam_sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    subject_id: Mapped[str] = mapped_column(String(36), ForeignKey("subjects.id"), nullable=False)
    session_date: Mapped[date] = mapped_column(Date, index=True, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    room_id: Mapped[str] = mapped_column(String(36), ForeignKey("rooms.id"), nullable=False)
    group_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    supervisor_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    intent_kind: Mapped[IntentKind] = mapped_column(
        SAEnum(IntentKind, name="intent_kind"),
        nullable=False,
        default=IntentKind.main_exam,
    )
    lifecycle_override: Mapped[LifecycleOverride | None] = mapped_column(
        SAEnum(LifecycleOverride, name="lifecycle_override"),
        nullable=True,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

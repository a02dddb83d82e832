from examforge.models.exam_session import ExamSession  # noqa: F401
from examforge.models.group import StudentGroup  # noqa: F401
from examforge.models.room import Room  # noqa: F401
from examforge.models.staff import Staff, StaffDateOverride  # noqa: F401
from examforge.models.subject import Subject  # noqa: F401

from routine.models.academic_year import AcademicYear  # noqa: F401
from routine.models.program import Program  # noqa: F401
from routine.models.room import Room, RoomType  # noqa: F401
from routine.models.scheduled_slot import (  # noqa: F401
    ClassCategory,
    ClassKind,
    LabGroup,
    ScheduledSlot,
    Section,
)
from routine.models.subject import Subject  # noqa: F401
from routine.models.teacher import Teacher  # noqa: F401
from routine.models.time_slot import TimeSlot  # noqa: F401

from ardn.models.activity import Activity
from ardn.models.organization import Organization
from ardn.models.participation import Participation
from ardn.models.point_adjustment import PointAdjustment
from ardn.models.program import Program
from ardn.models.student import Student
from ardn.models.user import User

__all__ = [
    "Organization",
    "User",
    "Program",
    "Student",
    "Activity",
    "Participation",
    "PointAdjustment",
]

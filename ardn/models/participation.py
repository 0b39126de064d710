from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ardn.db.base import Base
from ardn.models.common import UUIDPrimaryKeyMixin, utcnow


class Participation(UUIDPrimaryKeyMixin, Base):
    __tablename__ = "participations"
    __table_args__ = (
        UniqueConstraint("student_id", "activity_id", name="uq_participations_student_activity"),
        CheckConstraint("points_earned >= 0", name="ck_participations_points_non_negative"),
    )

    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    activity_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("activities.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    participated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    points_earned: Mapped[int] = mapped_column(Integer, nullable=False)
    is_late: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    recorded_by_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)

    student = relationship("Student", back_populates="participations")
    activity = relationship("Activity", back_populates="participations")

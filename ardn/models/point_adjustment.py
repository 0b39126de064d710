from sqlalchemy import CheckConstraint, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ardn.db.base import Base
from ardn.models.common import CreatedAtMixin, UUIDPrimaryKeyMixin


class PointAdjustment(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "point_adjustments"
    __table_args__ = (CheckConstraint("delta <> 0", name="ck_point_adjustments_delta_non_zero"),)

    student_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    delta: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(String(512), nullable=False)
    created_by_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)

    student = relationship("Student", back_populates="adjustments")

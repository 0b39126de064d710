from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ardn.db.base import Base
from ardn.models.common import CreatedAtMixin, UUIDPrimaryKeyMixin


class Student(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("organization_id", "student_number", name="uq_students_organization_number"),
        CheckConstraint("total_points >= 0", name="ck_students_total_points_non_negative"),
    )

    organization_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    program_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("programs.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    student_number: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    class_name: Mapped[str] = mapped_column(String(64), nullable=False)
    photo_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    # Balance cache over participations and adjustments; see services.ledger.
    total_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    program = relationship("Program", back_populates="students")
    participations = relationship("Participation", back_populates="student")
    adjustments = relationship("PointAdjustment", back_populates="student")

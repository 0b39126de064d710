from datetime import date

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ardn.db.base import Base
from ardn.models.common import CreatedAtMixin, UUIDPrimaryKeyMixin


class Program(UUIDPrimaryKeyMixin, CreatedAtMixin, Base):
    __tablename__ = "programs"
    __table_args__ = (
        UniqueConstraint("organization_id", "name", name="uq_programs_organization_name"),
        CheckConstraint("start_date < end_date", name="ck_programs_date_order"),
    )

    organization_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("organizations.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)

    students = relationship("Student", back_populates="program")
    activities = relationship("Activity", back_populates="program")

from __future__ import annotations

import enum
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import Column, Date, DateTime, Enum, ForeignKey, Integer, Numeric, String, Table, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campushub.db.base import Base


class PaymentStatus(str, enum.Enum):
    PENDING = "Pending"
    PARTIALLY_PAID = "Partially Paid"
    PAID = "Paid"


class FeeCategory(Base):
    __tablename__ = "fee_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)


class StudentFeePayment(Base):
    __tablename__ = "student_fee_payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id"), nullable=False, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id"), nullable=False, index=True)
    fee_category_id: Mapped[int] = mapped_column(ForeignKey("fee_categories.id"), nullable=False, index=True)

    # Invariant after every write: 0 <= paid_amount <= assigned_amount.
    assigned_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"), nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus, values_callable=lambda e: [m.value for m in e]),
        default=PaymentStatus.PENDING,
        nullable=False,
    )

    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    fee_category: Mapped[FeeCategory] = relationship()

    @property
    def outstanding(self) -> Decimal:
        return self.assigned_amount - self.paid_amount


class Concession(Base):
    __tablename__ = "concessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class StudentFeeConcession(Base):
    __tablename__ = "student_fee_concessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id"), nullable=False, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id"), nullable=False, index=True)
    student_fee_payment_id: Mapped[int] = mapped_column(
        ForeignKey("student_fee_payments.id"), nullable=False, index=True
    )
    concession_id: Mapped[int] = mapped_column(ForeignKey("concessions.id"), nullable=False, index=True)

    concession_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    applied_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    concession: Mapped[Concession] = relationship()


fee_type_group_categories = Table(
    "fee_type_group_categories",
    Base.metadata,
    Column("fee_type_group_id", ForeignKey("fee_type_groups.id"), primary_key=True),
    Column("fee_category_id", ForeignKey("fee_categories.id"), primary_key=True),
)


class FeeTypeGroup(Base):
    __tablename__ = "fee_type_groups"
    __table_args__ = (UniqueConstraint("school_id", "name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    fee_categories: Mapped[list[FeeCategory]] = relationship(secondary=fee_type_group_categories)

    @property
    def fee_category_ids(self) -> list[int]:
        return sorted(c.id for c in self.fee_categories)

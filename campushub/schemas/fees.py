from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from campushub.models.fees import PaymentStatus
from campushub.schemas.common import ActionResult


class FeeCategoryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    school_id: int
    name: str
    description: str | None
    amount: Decimal | None


class FeeCategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: str | None = None
    amount: Decimal | None = Field(default=None, ge=0)
    school_id: int | None = None


class FeePaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    school_id: int
    student_id: int
    fee_category_id: int
    assigned_amount: Decimal
    paid_amount: Decimal
    status: PaymentStatus
    due_date: date | None
    payment_date: date | None
    notes: str | None


class FeeAssign(BaseModel):
    student_id: int
    fee_category_id: int
    assigned_amount: Decimal = Field(gt=0)
    due_date: date | None = None
    notes: str | None = None


class ClassFeeAssign(BaseModel):
    class_id: int
    fee_category_ids: list[int] = Field(min_length=1)
    due_date: date | None = None
    notes: str | None = None


class ClassFeeAssigned(ActionResult):
    assignments_created: int


class PaymentRecord(BaseModel):
    payment_amount: Decimal
    payment_date: date


class FeePaymentResult(ActionResult):
    fee_payment: FeePaymentOut


class ConcessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    school_id: int
    title: str
    description: str | None


class ConcessionCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: str | None = None
    school_id: int | None = None


class ConcessionApply(BaseModel):
    fee_payment_id: int
    concession_id: int
    amount: Decimal


class AppliedConcessionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    school_id: int
    student_id: int
    student_fee_payment_id: int
    concession_id: int
    concession_amount: Decimal
    applied_by_user_id: int


class FeeTypeGroupOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    school_id: int
    name: str
    fee_category_ids: list[int]


class FeeTypeGroupWrite(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    fee_category_ids: list[int] = Field(default_factory=list)
    school_id: int | None = None

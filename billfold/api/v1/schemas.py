"""Pydantic schemas for API request/response validation"""

from datetime import date
from decimal import Decimal
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from billfold.domain.models import MonthCloseAction, PaymentStatus

PositiveAmount = Annotated[Decimal, Field(gt=0, max_digits=14, decimal_places=2)]


class PurchaseRequest(BaseModel):
    """Request body for POST /v1/cards/{card_id}/purchases"""

    description: str = Field(..., min_length=1)
    total_amount: PositiveAmount
    installments: int = Field(..., ge=1, le=120)
    first_installment_date: date
    category_ids: List[str] = []


class PurchaseResponse(BaseModel):
    purchase_id: str
    card_id: str
    description: str
    total_amount: Decimal
    installments: int
    first_installment_date: date
    category_ids: List[str]


class InstallmentSchema(BaseModel):
    """Single installment of a purchase"""

    purchase_id: str
    description: str
    installment_number: int
    total_installments: int
    amount: Decimal
    due_date: date


class ConsumptionResponse(BaseModel):
    """Response for GET /v1/cards/{card_id}/consumption"""

    card_id: str
    month: int
    year: int
    total_amount: Decimal
    items: List[InstallmentSchema]


class ScheduleResponse(BaseModel):
    purchase_id: str
    total_amount: Decimal
    installments: List[InstallmentSchema]


class CardPaymentStatusResponse(BaseModel):
    card_id: str
    month: int
    year: int
    is_paid: bool
    transaction_id: Optional[str] = None


class ServiceRequest(BaseModel):
    """Request body for POST /v1/services"""

    name: str = Field(..., min_length=1)
    estimated_amount: PositiveAmount
    day_of_month: int = Field(..., ge=1, le=31)
    category_id: Optional[str] = None
    icon: str = "pricetag"
    color: str = "#607D8B"
    is_active: bool = True


class ServiceUpdateRequest(BaseModel):
    """Request body for PATCH /v1/services/{service_id}; only sent fields change"""

    name: Optional[str] = Field(None, min_length=1)
    estimated_amount: Optional[Decimal] = Field(None, gt=0, max_digits=14, decimal_places=2)
    day_of_month: Optional[int] = Field(None, ge=1, le=31)
    category_id: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def reject_null_required_fields(self) -> "ServiceUpdateRequest":
        """Only category_id can be cleared; other fields are omitted to keep them"""
        nulled = sorted(
            name for name in self.model_fields_set if name != "category_id" and getattr(self, name) is None
        )
        if nulled:
            raise ValueError(f"Fields cannot be null: {', '.join(nulled)}")
        return self


class ServiceResponse(BaseModel):
    service_id: str
    name: str
    estimated_amount: Decimal
    day_of_month: int
    category_id: Optional[str] = None
    icon: str
    color: str
    is_active: bool


class MarkPaidRequest(BaseModel):
    """Request body for PUT /v1/services/{service_id}/payments/{year}/{month}"""

    amount: PositiveAmount
    transaction_id: Optional[str] = None


class ServicePaymentResponse(BaseModel):
    service_id: str
    month: int
    year: int
    status: PaymentStatus
    amount: Decimal
    payment_date: Optional[date] = None
    transaction_id: Optional[str] = None


class UnmarkResponse(BaseModel):
    removed: bool
    linked_transaction_deleted: Optional[bool] = None
    linked_transaction_error: Optional[str] = None


class ServiceAmountSchema(BaseModel):
    service_id: str
    kind: Literal["actual", "forecasted"]
    amount: Decimal


class ServicesTotalResponse(BaseModel):
    """Response for GET /v1/services/total"""

    month: int
    year: int
    total: Decimal
    actual_total: Decimal
    forecast_total: Decimal
    entries: List[ServiceAmountSchema]


class TransactionRequest(BaseModel):
    """Request body for POST /v1/transactions"""

    amount: PositiveAmount
    date: date
    description: str = ""
    category_ids: List[str] = []
    is_credit_card_payment: bool = False
    card_id: Optional[str] = None


class TransactionResponse(BaseModel):
    transaction_id: str
    amount: Decimal
    date: date
    description: str
    category_ids: List[str]
    is_credit_card_payment: bool
    card_id: Optional[str] = None
    source: str


class SummaryResponse(BaseModel):
    """Response for GET /v1/summary"""

    total_so_far: Decimal
    weekly_average: Decimal
    projected_total: Decimal
    previous_month_total: Decimal
    total_income: Decimal
    carry_over: Decimal
    gross_balance: Decimal
    pending_recurring: Decimal
    paid_recurring: Decimal
    balance: Decimal
    days_remaining: int
    available_daily: Decimal


class MonthCloseRequest(BaseModel):
    """Request body for POST /v1/month-close"""

    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=2100)
    remaining_balance: Decimal = Field(..., max_digits=14, decimal_places=2)
    action: MonthCloseAction
    actual_remaining: str = Field("", description="Amount still available, as typed (e.g. 1.234,56)")


class MonthCloseResponse(BaseModel):
    month: int
    year: int
    resolved: bool
    action: Optional[MonthCloseAction] = None

"""SQLAlchemy ORM models for the user ledger"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

from billfold.domain.models import new_id

Base = declarative_base()

# Fixed-point money, never binary float
Money = Numeric(14, 2)


class CreditCardPurchase(Base):
    """Purchase paid in monthly installments on a credit card"""

    __tablename__ = "credit_card_purchase"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(Text, nullable=False, index=True)
    credit_card_id = Column(Text, nullable=False, index=True)
    description = Column(Text, nullable=False)
    total_amount = Column(Money, nullable=False)
    installments = Column(Integer, nullable=False)
    first_installment_date = Column(Date, nullable=False)
    category_ids = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class RecurringServiceRow(Base):
    """Recurring monthly obligation definition"""

    __tablename__ = "recurring_service"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    estimated_amount = Column(Money, nullable=False)
    day_of_month = Column(Integer, nullable=False)
    category_id = Column(Text, nullable=True)
    icon = Column(Text, nullable=False, default="pricetag")
    color = Column(Text, nullable=False, default="#607D8B")
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    payments = relationship("ServicePaymentRow", back_populates="service", cascade="all, delete-orphan")


class ServicePaymentRow(Base):
    """Payment of a recurring service for one month"""

    __tablename__ = "service_payment"
    __table_args__ = (UniqueConstraint("service_id", "month", "year", name="uq_service_payment_period"),)

    id = Column(String(36), primary_key=True, default=new_id)
    service_id = Column(String(36), ForeignKey("recurring_service.id", ondelete="CASCADE"), nullable=False)
    # Not a foreign key: linked expenses are removed by hand, best effort
    expense_id = Column(String(36), nullable=True)
    payment_date = Column(Date, nullable=False)
    amount = Column(Money, nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    status = Column(Text, nullable=False, default="paid")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    service = relationship("RecurringServiceRow", back_populates="payments")


class Expense(Base):
    """Recorded expense transaction"""

    __tablename__ = "expense"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(Text, nullable=False, index=True)
    amount = Column(Money, nullable=False)
    date = Column(Date, nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    category_ids = Column(JSON, nullable=False, default=list)
    is_credit_card_payment = Column(Boolean, nullable=False, default=False)
    credit_card_id = Column(Text, nullable=True)
    source = Column(Text, nullable=False, default="manual")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class BalanceAdjustmentRow(Base):
    """Carry-over applied to a month's starting balance"""

    __tablename__ = "balance_adjustment"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(Text, nullable=False, index=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    amount = Column(Money, nullable=False)
    kind = Column(Text, nullable=False, default="carry_over")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class MonthCloseRow(Base):
    """How a closed month's leftover balance was resolved"""

    __tablename__ = "month_close"
    __table_args__ = (UniqueConstraint("user_id", "month", "year", name="uq_month_close_period"),)

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(Text, nullable=False, index=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    action = Column(Text, nullable=False)
    remaining_balance = Column(Money, nullable=False)
    carried_over = Column(Money, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

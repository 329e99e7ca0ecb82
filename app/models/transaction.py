from uuid import UUID
from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime

from app.models.enums import TransactionSource, TransactionType
from app.utils.dates import utcnow

class Transaction(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: UUID = Field(foreign_key="user.id", index=True)
    description: str
    amount: float
    type: TransactionType
    date: datetime = Field(default_factory=utcnow, index=True)
    category_id: Optional[int] = Field(default=None, foreign_key="category.id")

    # Movimiento agendado: todavía no cuenta en el libro
    is_pending: bool = Field(default=False, index=True)
    pending_date: Optional[datetime] = Field(default=None, index=True)

    # Referencias débiles para agregados (a lo sumo una)
    recurring_transaction_id: Optional[int] = Field(
        default=None, foreign_key="recurring_transaction.id", index=True
    )
    installment_id: Optional[int] = Field(default=None, foreign_key="installment.id", index=True)
    plan_id: Optional[int] = Field(default=None, foreign_key="plan.id", index=True)

    saving_account_id: Optional[int] = Field(default=None, foreign_key="saving_account.id")
    source_type: TransactionSource = Field(default=TransactionSource.manual)
    created_at: datetime = Field(default_factory=utcnow)

# app/models/recurring_transaction.py

from sqlmodel import SQLModel, Field
from typing import Optional
from uuid import UUID
from datetime import datetime

from app.models.enums import Frequency, TransactionType
from app.utils.dates import utcnow

class RecurringTransaction(SQLModel, table=True):
    __tablename__ = "recurring_transaction"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: UUID = Field(foreign_key="user.id", index=True)
    description: str
    amount: float
    type: TransactionType
    frequency: Frequency
    category_id: Optional[int] = Field(default=None, foreign_key="category.id")
    saving_account_id: Optional[int] = Field(default=None, foreign_key="saving_account.id")

    start_date: datetime
    end_date: Optional[datetime] = None
    # Próxima ocurrencia aún no materializada
    next_due_date: datetime = Field(index=True)
    last_executed_at: Optional[datetime] = None
    is_active: bool = Field(default=True, index=True)

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

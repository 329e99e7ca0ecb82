# app/models/installment.py

from sqlmodel import SQLModel, Field
from typing import Optional
from uuid import UUID
from datetime import datetime

from app.models.enums import ProgressStatus
from app.utils.dates import utcnow

class Installment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: UUID = Field(foreign_key="user.id", index=True)
    description: str
    total_amount: float
    installment_count: int  # mínimo 2
    current_installment: int = 0
    category_id: Optional[int] = Field(default=None, foreign_key="category.id")
    saving_account_id: Optional[int] = Field(default=None, foreign_key="saving_account.id")
    start_date: datetime
    status: ProgressStatus = Field(default=ProgressStatus.active, index=True)
    created_at: datetime = Field(default_factory=utcnow)

    @property
    def installment_amount(self) -> float:
        return self.total_amount / self.installment_count

    @property
    def remaining(self) -> int:
        return max(self.installment_count - self.current_installment, 0)

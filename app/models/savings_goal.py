# app/models/savings_goal.py

from sqlmodel import SQLModel, Field
from typing import Optional
from uuid import UUID
from datetime import datetime

from app.models.enums import ProgressStatus
from app.utils.dates import utcnow

class SavingsGoal(SQLModel, table=True):
    __tablename__ = "savings_goal"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: UUID = Field(foreign_key="user.id", index=True)
    name: str
    description: Optional[str] = None
    target_amount: float
    current_amount: float = 0.0  # se incrementa a mano
    start_date: datetime
    end_date: Optional[datetime] = None
    status: ProgressStatus = Field(default=ProgressStatus.active, index=True)
    created_at: datetime = Field(default_factory=utcnow)

# app/models/plan.py

from sqlmodel import SQLModel, Field
from typing import Optional
from uuid import UUID
from datetime import datetime

from app.models.enums import ProgressStatus
from app.utils.dates import utcnow

class Plan(SQLModel, table=True):
    """Presupuesto: current_amount es la suma cacheada de los gastos vinculados."""
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: UUID = Field(foreign_key="user.id", index=True)
    name: str
    description: Optional[str] = None
    target_amount: float
    current_amount: float = 0.0
    start_date: datetime
    end_date: datetime
    category_id: Optional[int] = Field(default=None, foreign_key="category.id")
    status: ProgressStatus = Field(default=ProgressStatus.active, index=True)
    created_at: datetime = Field(default_factory=utcnow)

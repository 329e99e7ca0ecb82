# app/schemas/savings_goal.py

from datetime import datetime
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import ProgressStatus


class SavingsGoalCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    target_amount: float = Field(..., gt=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class SavingsGoalUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    target_amount: Optional[float] = Field(None, gt=0)
    end_date: Optional[datetime] = None
    status: Optional[ProgressStatus] = None


class SavingsGoalDeposit(BaseModel):
    amount: Annotated[float, Field(gt=0, description="Monto a sumar a la meta")]


class SavingsGoalRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    target_amount: float
    current_amount: float
    start_date: datetime
    end_date: Optional[datetime] = None
    status: ProgressStatus

    model_config = ConfigDict(from_attributes=True)

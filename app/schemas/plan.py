# app/schemas/plan.py

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.enums import ProgressStatus


class PlanCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    target_amount: float = Field(..., gt=0)
    start_date: datetime
    end_date: datetime
    category_id: Optional[int] = None

    @model_validator(mode="after")
    def end_date_after_start(self):
        if self.end_date <= self.start_date:
            raise ValueError("La fecha final debe ser posterior a la fecha inicial.")
        return self


class PlanUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    target_amount: Optional[float] = Field(None, gt=0)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    category_id: Optional[int] = None
    status: Optional[ProgressStatus] = None


class PlanRead(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    target_amount: float
    current_amount: float
    start_date: datetime
    end_date: datetime
    category_id: Optional[int] = None
    status: ProgressStatus

    model_config = ConfigDict(from_attributes=True)


class PlanSync(BaseModel):
    plan_id: int
    previous_amount: float
    calculated_amount: float
    difference: float
    transaction_count: int
    is_synced: bool
    changed: bool = False
    status: ProgressStatus

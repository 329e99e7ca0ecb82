# app/models/saving_account.py

from sqlmodel import SQLModel, Field
from uuid import UUID
from typing import Optional
from enum import Enum

class SavingAccountStatus(str, Enum):
    active = "active"
    closed = "closed"

class SavingAccountType(str, Enum):
    cash = "cash"
    bank = "bank"
    credit_card = "credit_card"

class SavingAccount(SQLModel, table=True):
    """Medio de pago con el que se registra un movimiento (cuenta o tarjeta)."""
    __tablename__ = "saving_account"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: UUID = Field(foreign_key="user.id", index=True)
    name: str
    type: SavingAccountType = Field(default=SavingAccountType.bank)
    status: SavingAccountStatus = Field(default=SavingAccountStatus.active)

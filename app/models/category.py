from sqlmodel import SQLModel, Field
from typing import Optional
from uuid import UUID
from enum import Enum

class CategoryType(str, Enum):
    income = "income"
    expense = "expense"
    both = "both"

class Category(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    type: CategoryType = Field(default=CategoryType.expense)
    user_id: UUID = Field(foreign_key="user.id", index=True)
    is_active: bool = Field(default=True)

    def accepts(self, kind: str) -> bool:
        return self.type == CategoryType.both or self.type.value == kind

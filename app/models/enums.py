from enum import Enum

class TransactionType(str, Enum):
    income = "income"
    expense = "expense"

class Frequency(str, Enum):
    daily = "daily"
    weekly = "weekly"
    biweekly = "biweekly"
    monthly = "monthly"
    quarterly = "quarterly"
    semiannual = "semiannual"
    yearly = "yearly"

class ProgressStatus(str, Enum):
    """Estados compartidos por planes, metas de ahorro y compras a cuotas."""
    active = "active"
    completed = "completed"
    cancelled = "cancelled"

class TransactionSource(str, Enum):
    manual = "manual"
    recurring = "recurring"
    installment = "installment"

class NotificationKind(str, Enum):
    goal_almost_there = "goal_almost_there"
    goal_completed = "goal_completed"
    upcoming_recurring = "upcoming_recurring"
    low_balance = "low_balance"

class NotificationLevel(str, Enum):
    info = "info"
    warning = "warning"
    danger = "danger"
    success = "success"

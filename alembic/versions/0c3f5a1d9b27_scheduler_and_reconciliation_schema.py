"""scheduler and reconciliation schema

Revision ID: 0c3f5a1d9b27
Revises:
Create Date: 2025-09-02 10:12:40.118532

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0c3f5a1d9b27'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# Los tipos enum se crean una sola vez y se reutilizan entre tablas
category_type = postgresql.ENUM("income", "expense", "both", name="categorytype", create_type=False)
account_type = postgresql.ENUM("cash", "bank", "credit_card", name="savingaccounttype", create_type=False)
account_status = postgresql.ENUM("active", "closed", name="savingaccountstatus", create_type=False)
transaction_type = postgresql.ENUM("income", "expense", name="transactiontype", create_type=False)
frequency = postgresql.ENUM(
    "daily", "weekly", "biweekly", "monthly", "quarterly", "semiannual", "yearly",
    name="frequency", create_type=False,
)
progress_status = postgresql.ENUM("active", "completed", "cancelled", name="progressstatus", create_type=False)
transaction_source = postgresql.ENUM("manual", "recurring", "installment", name="transactionsource", create_type=False)
notification_kind = postgresql.ENUM(
    "goal_almost_there", "goal_completed", "upcoming_recurring", "low_balance",
    name="notificationkind", create_type=False,
)
notification_level = postgresql.ENUM("info", "warning", "danger", "success", name="notificationlevel", create_type=False)

ENUMS = [
    category_type, account_type, account_status, transaction_type, frequency,
    progress_status, transaction_source, notification_kind, notification_level,
]


def upgrade():
    bind = op.get_bind()
    for enum in ENUMS:
        enum.create(bind, checkfirst=True)

    op.create_table(
        "user",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("hashed_password", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)

    op.create_table(
        "category",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("type", category_type, nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_category_user_id", "category", ["user_id"])

    op.create_table(
        "saving_account",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("type", account_type, nullable=False),
        sa.Column("status", account_status, nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_saving_account_user_id", "saving_account", ["user_id"])

    op.create_table(
        "recurring_transaction",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("type", transaction_type, nullable=False),
        sa.Column("frequency", frequency, nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("category.id"), nullable=True),
        sa.Column("saving_account_id", sa.Integer(), sa.ForeignKey("saving_account.id"), nullable=True),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=True),
        sa.Column("next_due_date", sa.DateTime(), nullable=False),
        sa.Column("last_executed_at", sa.DateTime(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_recurring_transaction_user_id", "recurring_transaction", ["user_id"])
    op.create_index("ix_recurring_transaction_next_due_date", "recurring_transaction", ["next_due_date"])
    op.create_index("ix_recurring_transaction_is_active", "recurring_transaction", ["is_active"])

    op.create_table(
        "installment",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("total_amount", sa.Float(), nullable=False),
        sa.Column("installment_count", sa.Integer(), nullable=False),
        sa.Column("current_installment", sa.Integer(), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("category.id"), nullable=True),
        sa.Column("saving_account_id", sa.Integer(), sa.ForeignKey("saving_account.id"), nullable=True),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("status", progress_status, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_installment_user_id", "installment", ["user_id"])
    op.create_index("ix_installment_status", "installment", ["status"])

    op.create_table(
        "plan",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("target_amount", sa.Float(), nullable=False),
        sa.Column("current_amount", sa.Float(), nullable=False),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("category.id"), nullable=True),
        sa.Column("status", progress_status, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_plan_user_id", "plan", ["user_id"])
    op.create_index("ix_plan_status", "plan", ["status"])

    op.create_table(
        "savings_goal",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("target_amount", sa.Float(), nullable=False),
        sa.Column("current_amount", sa.Float(), nullable=False),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime(), nullable=True),
        sa.Column("status", progress_status, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_savings_goal_user_id", "savings_goal", ["user_id"])
    op.create_index("ix_savings_goal_status", "savings_goal", ["status"])

    op.create_table(
        "transaction",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("description", sa.String(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("type", transaction_type, nullable=False),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("category.id"), nullable=True),
        sa.Column("is_pending", sa.Boolean(), nullable=False),
        sa.Column("pending_date", sa.DateTime(), nullable=True),
        sa.Column(
            "recurring_transaction_id", sa.Integer(),
            sa.ForeignKey("recurring_transaction.id"), nullable=True,
        ),
        sa.Column("installment_id", sa.Integer(), sa.ForeignKey("installment.id"), nullable=True),
        sa.Column("plan_id", sa.Integer(), sa.ForeignKey("plan.id"), nullable=True),
        sa.Column("saving_account_id", sa.Integer(), sa.ForeignKey("saving_account.id"), nullable=True),
        sa.Column("source_type", transaction_source, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    for column in ("user_id", "date", "is_pending", "pending_date", "recurring_transaction_id", "installment_id", "plan_id"):
        op.create_index(f"ix_transaction_{column}", "transaction", [column])

    op.create_table(
        "notification",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("kind", notification_kind, nullable=False),
        sa.Column("level", notification_level, nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.String(), nullable=False),
        sa.Column("related_type", sa.String(), nullable=True),
        sa.Column("related_id", sa.String(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    for column in ("user_id", "kind", "related_id", "created_at"):
        op.create_index(f"ix_notification_{column}", "notification", [column])


def downgrade():
    for table in (
        "notification", "transaction", "savings_goal", "plan", "installment",
        "recurring_transaction", "saving_account", "category", "user",
    ):
        op.drop_table(table)
    bind = op.get_bind()
    for enum in reversed(ENUMS):
        enum.drop(bind, checkfirst=True)

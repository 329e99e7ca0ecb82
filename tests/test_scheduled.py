import datetime as dt

import pytest
from sqlalchemy.exc import OperationalError

from app.core.exceptions import InvalidTransition, ValidationError
from app.models.enums import ProgressStatus, TransactionType
from app.schemas.transaction import TransactionCreate
from app.services import scheduled, transactions


@pytest.fixture
def schedule(session, user, expense_category, now):
    def factory(amount=100.0, days_ahead=5, **fields):
        data = TransactionCreate(
            description="Alquiler",
            amount=amount,
            type=TransactionType.expense,
            category_id=expense_category.id,
            is_pending=True,
            pending_date=now + dt.timedelta(days=days_ahead),
            **fields,
        )
        return transactions.create_transaction(session, data, user.id, now)
    return factory


class TestCreatePending:
    def test_pending_date_must_be_future(self, session, user, now):
        data = TransactionCreate(
            description="Alquiler",
            amount=100,
            type=TransactionType.expense,
            is_pending=True,
            pending_date=now - dt.timedelta(hours=1),
        )
        with pytest.raises(ValidationError):
            transactions.create_transaction(session, data, user.id, now)

    def test_pending_flag_and_date_go_together(self):
        with pytest.raises(ValueError):
            TransactionCreate(description="x", amount=1, type=TransactionType.expense, is_pending=True)

    def test_pending_entry_does_not_touch_plan(self, session, schedule, make_plan, user):
        plan = make_plan(user)
        schedule(amount=250, plan_id=plan.id)
        session.refresh(plan)
        assert plan.current_amount == 0


class TestSweep:
    def test_confirms_due_entries(self, session, schedule, now):
        due = schedule(days_ahead=1)
        later = schedule(days_ahead=10)

        result = scheduled.process_scheduled_transactions(session, now + dt.timedelta(days=2))

        assert result.total == 1
        assert result.processed == 1
        session.refresh(due)
        session.refresh(later)
        assert due.is_pending is False
        assert due.pending_date is None
        assert due.date == now + dt.timedelta(days=1)
        assert later.is_pending is True

    def test_confirmation_updates_linked_plan(self, session, schedule, make_plan, user, now):
        plan = make_plan(user, target=300)
        schedule(amount=300, plan_id=plan.id, days_ahead=1)

        result = scheduled.process_scheduled_transactions(session, now + dt.timedelta(days=1))

        session.refresh(plan)
        assert plan.current_amount == 300
        assert plan.status == ProgressStatus.completed
        assert result.notifications == 1

    def test_income_does_not_count_for_plan(self, session, user, income_category, make_plan, now):
        plan = make_plan(user)
        data = TransactionCreate(
            description="Reintegro",
            amount=80,
            type=TransactionType.income,
            category_id=income_category.id,
            plan_id=plan.id,
            is_pending=True,
            pending_date=now + dt.timedelta(days=1),
        )
        transactions.create_transaction(session, data, user.id, now)
        scheduled.process_scheduled_transactions(session, now + dt.timedelta(days=1))
        session.refresh(plan)
        assert plan.current_amount == 0

    def test_failure_is_isolated(self, session, schedule, now, monkeypatch):
        batch = [schedule(days_ahead=1, amount=10 + n) for n in range(3)]
        failing_id = batch[1].id
        real_confirm = scheduled._confirm

        def flaky(session, transaction, now):
            if transaction.id == failing_id:
                raise OperationalError("UPDATE transaction", {}, Exception("database is locked"))
            return real_confirm(session, transaction, now)

        monkeypatch.setattr(scheduled, "_confirm", flaky)
        result = scheduled.process_scheduled_transactions(session, now + dt.timedelta(days=2))

        assert result.processed == 2
        assert result.errored == 1
        for entry in batch:
            session.refresh(entry)
            assert entry.is_pending is (entry.id == failing_id)

    def test_status_counts(self, session, schedule, now):
        schedule(days_ahead=1)
        schedule(days_ahead=3)
        status = scheduled.scheduled_status(session, now + dt.timedelta(days=2))
        assert status.counts == {"due": 1, "upcoming": 1}
        assert status.total == 2


class TestManualConfirm:
    def test_confirm_before_date_keeps_scheduled_date(self, session, schedule, user, now):
        entry = schedule(days_ahead=4)
        confirmed = scheduled.confirm_transaction(session, entry.id, user.id, now)
        assert confirmed.is_pending is False
        assert confirmed.date == now + dt.timedelta(days=4)

    def test_confirming_twice_fails(self, session, schedule, user, now):
        entry = schedule()
        scheduled.confirm_transaction(session, entry.id, user.id, now)
        with pytest.raises(InvalidTransition):
            scheduled.confirm_transaction(session, entry.id, user.id, now)

    def test_confirm_reconciles_installment(self, session, user, expense_category, make_installment, add_entry, now):
        purchase = make_installment(user, expense_category, current_installment=1)
        add_entry(user, 400, installment_id=purchase.id)
        pending = add_entry(
            user, 400, installment_id=purchase.id, is_pending=True, pending_date=now + dt.timedelta(days=3)
        )

        scheduled.confirm_transaction(session, pending.id, user.id, now)

        session.refresh(purchase)
        assert purchase.current_installment == 2

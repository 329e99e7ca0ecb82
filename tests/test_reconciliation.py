import datetime as dt

import pytest
from sqlmodel import select

from app.core.exceptions import InvalidTransition, NotFound
from app.models.enums import NotificationKind, ProgressStatus, TransactionType
from app.models.notification import Notification
from app.models.savings_goal import SavingsGoal
from app.schemas.plan import PlanUpdate
from app.services import plans, reconciliation, transactions


def notifications_of(session, kind):
    return session.exec(select(Notification).where(Notification.kind == kind)).all()


class TestPlanSync:
    def test_repairs_drift_and_is_idempotent(self, session, user, make_plan, add_entry, now):
        plan = make_plan(user)
        add_entry(user, 300, plan_id=plan.id)
        add_entry(user, 200, plan_id=plan.id)

        first = reconciliation.sync_plan(session, plan.id, user.id, now)
        assert first.previous_amount == 0
        assert first.calculated_amount == 500
        assert first.difference == 500
        assert first.transaction_count == 2
        assert first.is_synced is False
        assert first.changed is True

        second = reconciliation.sync_plan(session, plan.id, user.id, now)
        assert second.is_synced is True
        assert second.changed is False
        session.refresh(plan)
        assert plan.current_amount == 500

    def test_within_epsilon_is_synced(self, session, user, make_plan, add_entry, now):
        plan = make_plan(user, target=1000, current_amount=1000, status=ProgressStatus.completed)
        add_entry(user, 600, plan_id=plan.id)
        add_entry(user, 400.004, plan_id=plan.id)

        report = reconciliation.check_plan(session, plan)
        assert report.is_synced is True

        synced = reconciliation.sync_plan(session, plan.id, user.id, now)
        assert synced.changed is False
        session.refresh(plan)
        assert plan.current_amount == 1000
        assert notifications_of(session, NotificationKind.goal_completed) == []

    def test_only_confirmed_expenses_count(self, session, user, make_plan, add_entry, now):
        plan = make_plan(user)
        add_entry(user, 100, plan_id=plan.id)
        add_entry(user, 999, plan_id=plan.id, type=TransactionType.income)
        add_entry(user, 50, plan_id=plan.id, is_pending=True, pending_date=now + dt.timedelta(days=1))

        report = reconciliation.sync_plan(session, plan.id, user.id, now)
        assert report.calculated_amount == 100
        assert report.transaction_count == 1

    def test_status_mismatch_alone_is_drift(self, session, user, make_plan, add_entry, now):
        plan = make_plan(user, target=500, current_amount=500)
        add_entry(user, 500, plan_id=plan.id)

        report = reconciliation.sync_plan(session, plan.id, user.id, now)
        assert report.changed is True
        assert report.status == ProgressStatus.completed
        assert len(notifications_of(session, NotificationKind.goal_completed)) == 1

    def test_deleting_entry_reopens_plan(self, session, user, make_plan, add_entry, now):
        plan = make_plan(user, target=500)
        add_entry(user, 300, plan_id=plan.id)
        last = add_entry(user, 200, plan_id=plan.id)
        reconciliation.sync_plan(session, plan.id, user.id, now)
        session.refresh(plan)
        assert plan.status == ProgressStatus.completed

        transactions.delete_transaction(session, last.id, user.id, now)

        session.refresh(plan)
        assert plan.current_amount == 300
        assert plan.status == ProgressStatus.active

    def test_cancelled_plan_keeps_status(self, session, user, make_plan, add_entry, now):
        plan = make_plan(user, target=100, status=ProgressStatus.cancelled)
        add_entry(user, 150, plan_id=plan.id)
        report = reconciliation.sync_plan(session, plan.id, user.id, now)
        assert report.status == ProgressStatus.cancelled
        session.refresh(plan)
        assert plan.current_amount == 150

    def test_other_user_gets_not_found(self, session, user, make_plan, make_user, now):
        plan = make_plan(user)
        intruder = make_user("intruso@example.com")
        with pytest.raises(NotFound):
            reconciliation.sync_plan(session, plan.id, intruder.id, now)

    def test_crossing_eighty_percent_notifies_once(self, session, user, make_plan, add_entry, now):
        plan = make_plan(user, target=1000)
        add_entry(user, 850, plan_id=plan.id)
        reconciliation.sync_plan(session, plan.id, user.id, now)
        add_entry(user, 50, plan_id=plan.id)
        reconciliation.sync_plan(session, plan.id, user.id, now)

        assert len(notifications_of(session, NotificationKind.goal_almost_there)) == 1


class TestPlanSweep:
    def test_fixes_only_drifted_plans(self, session, user, make_plan, add_entry, now):
        clean = make_plan(user)
        drifted = make_plan(user, name="Auto")
        make_plan(user, name="Viejo", status=ProgressStatus.cancelled)
        add_entry(user, 120, plan_id=drifted.id)

        result = reconciliation.reconcile_all_plans(session, now)
        assert result.total == 2
        assert result.processed == 2
        assert result.fixed == 1
        assert result.changes == [
            {"plan_id": drifted.id, "previous_amount": 0.0, "new_amount": 120.0, "status": "active"}
        ]

        again = reconciliation.reconcile_all_plans(session, now)
        assert again.fixed == 0
        session.refresh(clean)
        assert clean.current_amount == 0

    def test_sample_of_changes_is_bounded(self, session, user, make_plan, add_entry, now, monkeypatch):
        monkeypatch.setattr("app.core.config.BATCH_SAMPLE_LIMIT", 2)
        for n in range(4):
            plan = make_plan(user, name=f"Plan {n}")
            add_entry(user, 10, plan_id=plan.id)

        result = reconciliation.reconcile_all_plans(session, now)
        assert result.fixed == 4
        assert len(result.changes) == 2

    def test_status_check_does_not_write(self, session, user, make_plan, add_entry, now):
        plan = make_plan(user)
        add_entry(user, 75, plan_id=plan.id)

        status = reconciliation.plans_status(session, now)
        assert status.counts == {"needs_sync": 1}
        assert status.samples == [{"plan_id": plan.id, "difference": 75.0}]
        session.refresh(plan)
        assert plan.current_amount == 0


class TestPlanUpdate:
    def test_raising_target_reopens(self, session, user, make_plan, add_entry, now):
        plan = make_plan(user, target=100)
        add_entry(user, 100, plan_id=plan.id)
        reconciliation.sync_plan(session, plan.id, user.id, now)

        updated = plans.update_plan(session, plan.id, PlanUpdate(target_amount=400), user.id, now)
        assert updated.status == ProgressStatus.active

    def test_lowering_target_completes(self, session, user, make_plan, add_entry, now):
        plan = make_plan(user, target=400)
        add_entry(user, 100, plan_id=plan.id)
        reconciliation.sync_plan(session, plan.id, user.id, now)

        updated = plans.update_plan(session, plan.id, PlanUpdate(target_amount=100), user.id, now)
        assert updated.status == ProgressStatus.completed

    def test_cancel_is_final(self, session, user, make_plan, now):
        plan = make_plan(user)
        plans.update_plan(session, plan.id, PlanUpdate(status=ProgressStatus.cancelled), user.id, now)
        with pytest.raises(InvalidTransition):
            plans.update_plan(session, plan.id, PlanUpdate(name="Otra vez"), user.id, now)

    def test_delete_unlinks_entries(self, session, user, make_plan, add_entry):
        plan = make_plan(user)
        entry = add_entry(user, 10, plan_id=plan.id)
        assert plans.delete_plan(session, plan.id, user.id) == 1
        session.refresh(entry)
        assert entry.plan_id is None


class TestInstallmentSync:
    def test_counter_follows_confirmed_entries(self, session, user, expense_category, make_installment, add_entry):
        purchase = make_installment(user, expense_category, current_installment=1)
        for _ in range(3):
            add_entry(user, 400, installment_id=purchase.id)

        report = reconciliation.sync_installment(session, purchase.id, user.id)
        assert report.previous_installment == 1
        assert report.calculated_installment == 3
        assert report.difference == 2
        assert report.status == ProgressStatus.completed

        again = reconciliation.sync_installment(session, purchase.id, user.id)
        assert again.is_synced is True
        assert again.changed is False

    def test_counter_is_clamped(self, session, user, expense_category, make_installment, add_entry):
        purchase = make_installment(user, expense_category)
        for _ in range(4):
            add_entry(user, 400, installment_id=purchase.id)

        report = reconciliation.sync_installment(session, purchase.id, user.id)
        assert report.transaction_count == 4
        assert report.calculated_installment == 3
        session.refresh(purchase)
        assert purchase.current_installment == 3

    def test_sweep(self, session, user, expense_category, make_installment, add_entry, now):
        synced = make_installment(user, expense_category, current_installment=1)
        add_entry(user, 400, installment_id=synced.id)
        drifted = make_installment(user, expense_category, current_installment=2, description="Tele")
        add_entry(user, 400, installment_id=drifted.id)

        status = reconciliation.installments_status(session, now)
        assert status.counts == {"needs_sync": 1}

        result = reconciliation.reconcile_all_installments(session, now)
        assert result.total == 2
        assert result.fixed == 1
        assert result.changes[0]["installment_id"] == drifted.id
        session.refresh(drifted)
        assert drifted.current_installment == 1


class TestSavingsGoalSweep:
    def test_repairs_status_only(self, session, user, now):
        goal = SavingsGoal(
            user_id=user.id,
            name="Fondo",
            target_amount=500,
            current_amount=500,
            start_date=now,
            status=ProgressStatus.active,
        )
        session.add(goal)
        session.commit()

        result = reconciliation.reconcile_all_savings_goals(session, now)
        assert result.fixed == 1
        assert result.notifications == 1
        session.refresh(goal)
        assert goal.status == ProgressStatus.completed
        assert goal.current_amount == 500

        again = reconciliation.reconcile_all_savings_goals(session, now)
        assert again.fixed == 0

    def test_status_counts_goals_to_repair(self, session, user, now):
        reached = SavingsGoal(
            user_id=user.id, name="Fondo", target_amount=500, current_amount=500,
            start_date=now, status=ProgressStatus.active,
        )
        on_track = SavingsGoal(
            user_id=user.id, name="Auto", target_amount=5000, current_amount=100,
            start_date=now, status=ProgressStatus.active,
        )
        session.add(reached)
        session.add(on_track)
        session.commit()

        status = reconciliation.savings_goals_status(session, now)
        assert status.total == 2
        assert status.counts == {"needs_sync": 1}
        assert status.samples[0]["goal_id"] == reached.id
        session.refresh(reached)
        assert reached.status == ProgressStatus.active

import datetime as dt

import pytest
from sqlalchemy.exc import OperationalError

from app.core import config
from app.models.enums import ProgressStatus
from app.services import reconciliation
from app.utils.dates import utcnow

CRON_PATHS = [
    "/cron/recurring/process",
    "/cron/scheduled/process",
    "/cron/installments/advance",
    "/cron/plans/reconcile",
    "/cron/installments/reconcile",
    "/cron/savings-goals/reconcile",
    "/cron/notifications/check",
]


def iso(value: dt.datetime) -> str:
    return value.isoformat()


class TestCronAuth:
    @pytest.mark.parametrize("path", CRON_PATHS)
    def test_requires_secret(self, client, path):
        assert client.post(path).status_code == 401
        assert client.post(path, headers={"Authorization": "Bearer wrong"}).status_code == 401

    @pytest.mark.parametrize("path", CRON_PATHS)
    def test_runs_with_secret(self, client, cron_headers, path):
        response = client.post(path, headers=cron_headers)
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert {"total", "processed", "fixed", "errored", "changes", "errors"} <= body.keys()

    def test_unset_secret_rejects_everything(self, client, monkeypatch):
        monkeypatch.setattr(config, "CRON_SECRET", None)
        response = client.post("/cron/recurring/process", headers={"Authorization": "Bearer None"})
        assert response.status_code == 401

    def test_user_token_is_not_a_cron_secret(self, client, auth_headers):
        assert client.post("/cron/plans/reconcile", headers=auth_headers).status_code == 401

    @pytest.mark.parametrize("path", CRON_PATHS)
    def test_every_trigger_has_a_status_view(self, client, auth_headers, path):
        assert client.get(path).status_code == 401
        response = client.get(path, headers=auth_headers)
        assert response.status_code == 200
        assert {"job", "checked_at", "total", "counts"} <= response.json().keys()

    def test_status_endpoints_need_session(self, client, auth_headers):
        assert client.get("/cron/recurring/process").status_code == 401
        response = client.get("/cron/recurring/process", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["counts"] == {"due": 0, "upcoming": 0}


class TestRecurringFlow:
    def test_create_process_and_execute(self, client, auth_headers, cron_headers, expense_category):
        start = utcnow() - dt.timedelta(days=1)
        created = client.post(
            "/recurring-transactions",
            json={
                "description": "Streaming",
                "amount": 12.5,
                "type": "expense",
                "frequency": "monthly",
                "category_id": expense_category.id,
                "start_date": iso(start),
            },
            headers=auth_headers,
        )
        assert created.status_code == 201
        rec_id = created.json()["id"]

        executed = client.post(f"/recurring-transactions/{rec_id}/execute", headers=auth_headers)
        assert executed.status_code == 200
        body = executed.json()
        assert body["transaction"]["recurring_transaction_id"] == rec_id
        assert body["transaction"]["source_type"] == "recurring"

        again = client.post(f"/recurring-transactions/{rec_id}/execute", headers=auth_headers)
        assert again.status_code == 400

        batch = client.post("/cron/recurring/process", headers=cron_headers).json()
        assert batch["total"] == 0

    def test_unknown_id_is_404(self, client, auth_headers):
        response = client.post("/recurring-transactions/999/execute", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["detail"] == "Movimiento recurrente no encontrado"


class TestInstallmentFlow:
    def test_create_next_and_sync(self, client, auth_headers, expense_category):
        created = client.post(
            "/installments",
            json={
                "description": "Heladera",
                "total_amount": 1200,
                "installment_count": 3,
                "category_id": expense_category.id,
            },
            headers=auth_headers,
        )
        assert created.status_code == 201
        body = created.json()
        assert body["installment_amount"] == 400
        assert len(body["transactions"]) == 1
        inst_id = body["id"]

        for expected in (2, 3):
            step = client.post(f"/installments/{inst_id}/next", headers=auth_headers)
            assert step.status_code == 200
            assert step.json()["current_installment"] == expected
        assert step.json()["status"] == "completed"

        finished = client.post(f"/installments/{inst_id}/next", headers=auth_headers)
        assert finished.status_code == 409

        check = client.get(f"/installments/{inst_id}/sync", headers=auth_headers)
        assert check.json()["is_synced"] is True

    def test_invalid_count_is_422(self, client, auth_headers, expense_category):
        response = client.post(
            "/installments",
            json={
                "description": "Silla",
                "total_amount": 100,
                "installment_count": 1,
                "category_id": expense_category.id,
            },
            headers=auth_headers,
        )
        assert response.status_code == 422


class TestPlanFlow:
    def test_transactions_keep_plan_in_sync(self, client, auth_headers, expense_category):
        now = utcnow()
        plan = client.post(
            "/plans",
            json={
                "name": "Mudanza",
                "target_amount": 500,
                "start_date": iso(now - dt.timedelta(days=10)),
                "end_date": iso(now + dt.timedelta(days=60)),
            },
            headers=auth_headers,
        ).json()

        spent = client.post(
            "/transactions",
            json={
                "description": "Flete",
                "amount": 500,
                "type": "expense",
                "category_id": expense_category.id,
                "plan_id": plan["id"],
            },
            headers=auth_headers,
        )
        assert spent.status_code == 201

        [listed] = client.get("/plans", headers=auth_headers).json()
        assert listed["current_amount"] == 500
        assert listed["status"] == ProgressStatus.completed.value

        check = client.get(f"/plans/{plan['id']}/reconcile", headers=auth_headers).json()
        assert check["is_synced"] is True

        client.delete(f"/transactions/{spent.json()['id']}", headers=auth_headers)
        report = client.post(f"/plans/{plan['id']}/reconcile", headers=auth_headers).json()
        assert report["is_synced"] is True
        assert report["previous_amount"] == 0

        notices = client.get("/notifications", headers=auth_headers).json()
        assert [n["kind"] for n in notices] == ["goal_completed"]

    def test_editing_amount_updates_plan(self, client, auth_headers, user, make_plan):
        plan = make_plan(user)
        spent = client.post(
            "/transactions",
            json={"description": "Hotel", "amount": 300, "type": "expense", "plan_id": plan.id},
            headers=auth_headers,
        ).json()

        edited = client.put(f"/transactions/{spent['id']}", json={"amount": 900}, headers=auth_headers)
        assert edited.status_code == 200
        assert edited.json()["amount"] == 900

        [listed] = client.get("/plans", headers=auth_headers).json()
        assert listed["current_amount"] == 900

        invalid = client.put(f"/transactions/{spent['id']}", json={"amount": -5}, headers=auth_headers)
        assert invalid.status_code == 422

    def test_plan_of_other_user_is_hidden(self, client, make_user, make_plan, auth_headers):
        stranger = make_user("otra@example.com")
        plan = make_plan(stranger)
        response = client.post(f"/plans/{plan.id}/reconcile", headers=auth_headers)
        assert response.status_code == 404


class TestScheduledFlow:
    def test_confirm_endpoint(self, client, auth_headers, expense_category):
        pending = client.post(
            "/transactions",
            json={
                "description": "Cuota club",
                "amount": 40,
                "type": "expense",
                "category_id": expense_category.id,
                "is_pending": True,
                "pending_date": iso(utcnow() + dt.timedelta(days=3)),
            },
            headers=auth_headers,
        ).json()
        assert pending["is_pending"] is True

        listed = client.get("/transactions", params={"pending": True}, headers=auth_headers).json()
        assert [t["id"] for t in listed] == [pending["id"]]

        confirmed = client.post(f"/transactions/{pending['id']}/confirm", headers=auth_headers)
        assert confirmed.status_code == 200
        assert confirmed.json()["is_pending"] is False

        twice = client.post(f"/transactions/{pending['id']}/confirm", headers=auth_headers)
        assert twice.status_code == 409


class TestSavingsGoalFlow:
    def test_add_amount(self, client, auth_headers):
        goal = client.post(
            "/savings-goals", json={"name": "Colchón", "target_amount": 100}, headers=auth_headers
        ).json()

        response = client.post(
            f"/savings-goals/{goal['id']}/add-amount", json={"amount": 100}, headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

        rejected = client.post(
            f"/savings-goals/{goal['id']}/add-amount", json={"amount": 0}, headers=auth_headers
        )
        assert rejected.status_code == 422


class TestPersistenceErrors:
    def test_store_failure_on_single_entity_is_503(self, client, auth_headers, user, make_plan, monkeypatch):
        plan = make_plan(user)

        def broken(session, plan, now):
            raise OperationalError("UPDATE plan", {}, Exception("database is locked"))

        monkeypatch.setattr(reconciliation, "reconcile_plan", broken)
        response = client.post(f"/plans/{plan.id}/reconcile", headers=auth_headers)
        assert response.status_code == 503
        assert response.json() == {"detail": "Error de persistencia, intente nuevamente."}

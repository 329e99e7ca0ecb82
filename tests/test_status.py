from types import SimpleNamespace

import pytest

from app.core.exceptions import InvalidTransition
from app.models.enums import ProgressStatus
from app.services.status import (
    apply_status,
    cancel,
    deactivate,
    derive_status,
    ensure_open,
    ensure_transition,
    reactivate,
)


class TestDeriveStatus:
    def test_reaching_target_completes(self):
        assert derive_status(ProgressStatus.active, 100, 100) == ProgressStatus.completed

    def test_below_target_stays_active(self):
        assert derive_status(ProgressStatus.active, 99.99, 100) == ProgressStatus.active

    def test_completed_goes_back_to_active(self):
        assert derive_status(ProgressStatus.completed, 50, 100) == ProgressStatus.active

    def test_cancelled_is_sticky(self):
        assert derive_status(ProgressStatus.cancelled, 500, 100) == ProgressStatus.cancelled


class TestTransitions:
    @pytest.mark.parametrize(
        "current, target",
        [
            (ProgressStatus.active, ProgressStatus.completed),
            (ProgressStatus.completed, ProgressStatus.active),
            (ProgressStatus.active, ProgressStatus.cancelled),
            (ProgressStatus.completed, ProgressStatus.cancelled),
            (ProgressStatus.cancelled, ProgressStatus.cancelled),
        ],
    )
    def test_allowed(self, current, target):
        assert ensure_transition(current, target) == target

    @pytest.mark.parametrize("target", [ProgressStatus.active, ProgressStatus.completed])
    def test_nothing_leaves_cancelled(self, target):
        with pytest.raises(InvalidTransition):
            ensure_transition(ProgressStatus.cancelled, target)

    def test_ensure_open(self):
        ensure_open(ProgressStatus.completed)
        with pytest.raises(InvalidTransition):
            ensure_open(ProgressStatus.cancelled, "El plan")

    def test_cancel(self):
        entity = SimpleNamespace(status=ProgressStatus.completed)
        cancel(entity)
        assert entity.status == ProgressStatus.cancelled


class TestApplyStatus:
    def test_reports_change(self):
        entity = SimpleNamespace(status=ProgressStatus.active)
        assert apply_status(entity, 10, 10) is True
        assert entity.status == ProgressStatus.completed

    def test_reports_no_change(self):
        entity = SimpleNamespace(status=ProgressStatus.active)
        assert apply_status(entity, 5, 10) is False
        assert entity.status == ProgressStatus.active

    def test_never_reopens_cancelled(self):
        entity = SimpleNamespace(status=ProgressStatus.cancelled)
        assert apply_status(entity, 0, 10) is False
        assert entity.status == ProgressStatus.cancelled


class TestRecurringFlag:
    def test_deactivate_and_reactivate(self):
        recurring = SimpleNamespace(is_active=True)
        deactivate(recurring)
        assert recurring.is_active is False
        reactivate(recurring)
        assert recurring.is_active is True

    def test_deactivate_twice_fails(self):
        recurring = SimpleNamespace(is_active=False)
        with pytest.raises(InvalidTransition):
            deactivate(recurring)

    def test_reactivate_active_fails(self):
        recurring = SimpleNamespace(is_active=True)
        with pytest.raises(InvalidTransition):
            reactivate(recurring)

"""
Bucle común de los procesos por lotes.

Cada entidad es una unidad de trabajo propia: si falla se hace rollback de
esa entidad, se registra el error y el lote sigue con las demás.
"""

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.exceptions import FinanceError, PersistenceError
from app.core.logging import get_logger
from app.schemas.batch import BatchResult

log = get_logger(__name__)


@dataclass
class Outcome:
    fixed: bool = False
    skipped: bool = False
    notifications: int = 0
    change: Optional[Dict[str, Any]] = field(default=None)


def run_batch(
    session: Session,
    job: str,
    entity_ids: Iterable[Any],
    handler: Callable[[Session, Any], Outcome],
    now: dt.datetime,
) -> BatchResult:
    entity_ids = list(entity_ids)
    result = BatchResult(job=job, started_at=now, total=len(entity_ids))

    for entity_id in entity_ids:
        try:
            outcome = handler(session, entity_id)
            session.commit()
        except FinanceError as exc:
            session.rollback()
            log.warning(f"{job}.entity_failed", entity_id=entity_id, error=exc.detail)
            result.record_error(entity_id, exc)
            continue
        except SQLAlchemyError as exc:
            session.rollback()
            log.error(f"{job}.entity_failed", entity_id=entity_id, exc_info=True)
            result.record_error(entity_id, PersistenceError(f"Error de persistencia: {exc}"))
            continue

        result.notifications += outcome.notifications
        if outcome.skipped:
            result.skipped += 1
            continue
        result.processed += 1
        if outcome.fixed:
            result.fixed += 1
        if outcome.change:
            result.record_change(outcome.change)

    log.info(
        f"{job}.finished",
        total=result.total,
        processed=result.processed,
        fixed=result.fixed,
        skipped=result.skipped,
        errored=result.errored,
        notifications=result.notifications,
    )
    return result

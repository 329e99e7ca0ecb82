"""
Ejecuta los lotes programados sin pasar por HTTP (cron del sistema).

    python -m app.scripts.run_cron recurring scheduled plans
    python -m app.scripts.run_cron all
"""

import argparse
import json
import sys

from sqlmodel import Session

from app.core.logging import configure_logging, get_logger
from app.database import create_db_and_tables, engine
from app.services import installments, notifications, reconciliation, recurring, scheduled
from app.utils.dates import utcnow

JOBS = {
    "recurring": recurring.process_recurring_transactions,
    "scheduled": scheduled.process_scheduled_transactions,
    "installments": installments.advance_due_installments,
    "plans": reconciliation.reconcile_all_plans,
    "installments-sync": reconciliation.reconcile_all_installments,
    "savings-goals": reconciliation.reconcile_all_savings_goals,
    "notifications": notifications.check_notifications,
}

log = get_logger(__name__)


def run(job_names: list[str]) -> int:
    """Corre cada lote en orden y devuelve 1 si alguno tuvo errores."""
    exit_code = 0
    for name in job_names:
        with Session(engine) as session:
            result = JOBS[name](session, utcnow())
        print(json.dumps(result.model_dump(mode="json"), ensure_ascii=False))
        if result.errored:
            exit_code = 1
    return exit_code


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Procesa movimientos programados y conciliaciones.")
    parser.add_argument("jobs", nargs="+", choices=[*JOBS, "all"])
    args = parser.parse_args(argv)

    configure_logging()
    create_db_and_tables()

    names = list(JOBS) if "all" in args.jobs else args.jobs
    log.info("cron.started", jobs=names)
    return run(names)


if __name__ == "__main__":
    sys.exit(main())

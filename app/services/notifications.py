"""
Reglas que disparan notificaciones (la entrega es externa).

Cada evento lleva una clave (usuario, tipo, entidad relacionada) y se
descarta si ya existe uno idéntico en las últimas NOTIFICATION_DEDUP_HOURS.
"""

import datetime as dt
from typing import Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from app.core import config
from app.core.logging import get_logger
from app.models.enums import NotificationKind, NotificationLevel, ProgressStatus, TransactionType
from app.models.notification import Notification
from app.models.recurring_transaction import RecurringTransaction
from app.models.transaction import Transaction
from app.models.user import User
from app.schemas.batch import BatchResult, BatchStatus

log = get_logger(__name__)

ALMOST_THERE_PERCENT = 80.0


def was_recently_notified(
    session: Session,
    user_id: UUID,
    kind: NotificationKind,
    related_id: Optional[str],
    now: dt.datetime,
) -> bool:
    since = now - dt.timedelta(hours=config.NOTIFICATION_DEDUP_HOURS)
    query = select(Notification.id).where(
        Notification.user_id == user_id,
        Notification.kind == kind,
        Notification.created_at >= since,
    )
    if related_id is None:
        query = query.where(Notification.related_id.is_(None))
    else:
        query = query.where(Notification.related_id == related_id)
    return session.exec(query.limit(1)).first() is not None


def raise_notification(
    session: Session,
    *,
    user_id: UUID,
    kind: NotificationKind,
    title: str,
    message: str,
    now: dt.datetime,
    level: NotificationLevel = NotificationLevel.info,
    related_type: Optional[str] = None,
    related_id: Optional[object] = None,
) -> Optional[Notification]:
    """Agrega la notificación a la sesión salvo que esté duplicada. No hace commit."""
    related_key = str(related_id) if related_id is not None else None
    if was_recently_notified(session, user_id, kind, related_key, now):
        log.debug("notification.suppressed", user_id=str(user_id), kind=kind.value, related_id=related_key)
        return None

    notification = Notification(
        user_id=user_id,
        kind=kind,
        level=level,
        title=title,
        message=message,
        related_type=related_type,
        related_id=related_key,
        created_at=now,
    )
    session.add(notification)
    log.info("notification.raised", user_id=str(user_id), kind=kind.value, related_id=related_key)
    return notification


def progress_percent(current: float, target: float) -> float:
    if target <= 0:
        return 100.0
    return current / target * 100


def notify_progress(
    session: Session,
    goal,
    *,
    related_type: str,
    previous_amount: float,
    previous_status: ProgressStatus,
    now: dt.datetime,
) -> Optional[Notification]:
    """
    Evalúa un plan o meta tras cambiar su progreso.

    La meta cumplida se avisa solo al entrar en ``completed``; el aviso de
    "casi listo" solo cuando el progreso cruza el 80% sin llegar al 100%.
    """
    if goal.status == ProgressStatus.completed:
        if ProgressStatus(previous_status) == ProgressStatus.completed:
            return None
        return raise_notification(
            session,
            user_id=goal.user_id,
            kind=NotificationKind.goal_completed,
            level=NotificationLevel.success,
            title="¡Meta cumplida! 🎉",
            message=f'Felicitaciones, completaste "{goal.name}".',
            related_type=related_type,
            related_id=goal.id,
            now=now,
        )

    if goal.status != ProgressStatus.active:
        return None

    before = progress_percent(previous_amount, goal.target_amount)
    after = progress_percent(goal.current_amount, goal.target_amount)
    if before < ALMOST_THERE_PERCENT <= after < 100:
        return raise_notification(
            session,
            user_id=goal.user_id,
            kind=NotificationKind.goal_almost_there,
            level=NotificationLevel.success,
            title="¡Casi lo logras!",
            message=f'Te falta {100 - after:.0f}% para completar "{goal.name}".',
            related_type=related_type,
            related_id=goal.id,
            now=now,
        )
    return None


def notify_upcoming_recurring(
    session: Session, recurring: RecurringTransaction, now: dt.datetime
) -> Optional[Notification]:
    return raise_notification(
        session,
        user_id=recurring.user_id,
        kind=NotificationKind.upcoming_recurring,
        level=NotificationLevel.warning,
        title="Movimiento recurrente próximo",
        message=f"{recurring.description} vence el {recurring.next_due_date:%d/%m/%Y}",
        related_type="recurring_transaction",
        related_id=recurring.id,
        now=now,
    )


def user_balance(session: Session, user_id: UUID) -> float:
    """Ingresos confirmados menos gastos confirmados."""
    rows = session.exec(
        select(Transaction.type, func.coalesce(func.sum(Transaction.amount), 0.0))
        .where(Transaction.user_id == user_id, Transaction.is_pending == False)
        .group_by(Transaction.type)
    ).all()
    totals = {TransactionType(kind): float(total) for kind, total in rows}
    return totals.get(TransactionType.income, 0.0) - totals.get(TransactionType.expense, 0.0)


def check_low_balance(session: Session, user_id: UUID, now: dt.datetime) -> Optional[Notification]:
    balance = user_balance(session, user_id)
    if balance >= 0:
        return None
    return raise_notification(
        session,
        user_id=user_id,
        kind=NotificationKind.low_balance,
        level=NotificationLevel.danger,
        title="Saldo bajo",
        message=f"Tu saldo está en negativo: {balance:.2f}. Revisa tus gastos.",
        now=now,
    )


def upcoming_window(now: dt.datetime) -> dt.datetime:
    return now + dt.timedelta(days=config.UPCOMING_DAYS)


def upcoming_recurring_query(now: dt.datetime, user_id: Optional[UUID] = None):
    query = select(RecurringTransaction).where(
        RecurringTransaction.is_active == True,
        RecurringTransaction.next_due_date > now,
        RecurringTransaction.next_due_date <= upcoming_window(now),
    )
    if user_id is not None:
        query = query.where(RecurringTransaction.user_id == user_id)
    return query.order_by(RecurringTransaction.next_due_date)


def check_notifications(session: Session, now: dt.datetime) -> BatchResult:
    """Recorre los usuarios y dispara saldo bajo y recurrentes próximos."""
    result = BatchResult(job="notifications", started_at=now)
    user_ids = session.exec(select(User.id).limit(config.BATCH_MAX_ENTITIES)).all()
    result.total = len(user_ids)

    for user_id in user_ids:
        try:
            created = 0
            if check_low_balance(session, user_id, now):
                created += 1
            for recurring in session.exec(upcoming_recurring_query(now, user_id)).all():
                if notify_upcoming_recurring(session, recurring, now):
                    created += 1
            session.commit()
            result.processed += 1
            result.notifications += created
        except SQLAlchemyError as exc:
            session.rollback()
            log.error("notifications.user_failed", user_id=str(user_id), exc_info=True)
            result.record_error(str(user_id), exc)

    log.info(
        "notifications.checked",
        users=result.total,
        created=result.notifications,
        errored=result.errored,
    )
    return result


def notifications_status(session: Session, now: dt.datetime) -> BatchStatus:
    user_ids = session.exec(select(User.id).limit(config.BATCH_MAX_ENTITIES)).all()
    negative = sum(1 for user_id in user_ids if user_balance(session, user_id) < 0)
    upcoming = len(session.exec(upcoming_recurring_query(now)).all())
    return BatchStatus(
        job="notifications",
        checked_at=now,
        total=len(user_ids),
        counts={"negative_balance": negative, "upcoming_recurring": upcoming},
    )


def list_notifications(session: Session, user_id: UUID, unread_only: bool = False) -> list[Notification]:
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.is_read == False)
    return session.exec(query.order_by(Notification.created_at.desc())).all()


def mark_all_read(session: Session, user_id: UUID) -> int:
    pending = session.exec(
        select(Notification).where(
            Notification.user_id == user_id, Notification.is_read == False
        )
    ).all()
    for notification in pending:
        notification.is_read = True
        session.add(notification)
    session.commit()
    return len(pending)

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel, Session, create_engine

from app.core.config import DATABASE_URL, DB_ECHO

engine = create_engine(DATABASE_URL, echo=DB_ECHO)  # echo=True imprime las queries


def create_db_and_tables():
    # importar los modelos para registrar las tablas
    from app.models import (  # noqa: F401
        category,
        installment,
        notification,
        plan,
        recurring_transaction,
        saving_account,
        savings_goal,
        transaction,
        user,
    )
    SQLModel.metadata.create_all(engine)


def get_session():
    with Session(engine) as session:
        try:
            yield session
        except SQLAlchemyError:
            session.rollback()
            raise

from fastapi import FastAPI
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from app.core.exceptions import FinanceError, finance_error_handler, persistence_error_handler
from app.core.logging import configure_logging
from app.database import create_db_and_tables
from app.api import cron, installments, notifications, plans, recurring_transactions, savings_goals, transactions
from fastapi.middleware.cors import CORSMiddleware

@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    create_db_and_tables()
    yield

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "https://finanzas-personal-frontend-1xt6.vercel.app",
        "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(FinanceError, finance_error_handler)
app.add_exception_handler(SQLAlchemyError, persistence_error_handler)

app.include_router(transactions.router)
app.include_router(recurring_transactions.router)
app.include_router(installments.router)
app.include_router(plans.router)
app.include_router(savings_goals.router)
app.include_router(notifications.router)
app.include_router(cron.router)

@app.get("/")
def root():
    return {"message": "Servidor de gastos personales: movimientos programados y conciliación"}

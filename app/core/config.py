import os
from dotenv import load_dotenv

load_dotenv()  # Carga las variables de entorno


def _as_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL")
DB_ECHO = _as_bool(os.getenv("DB_ECHO"))

# Sesión de usuario (JWT)
SECRET_KEY = os.getenv("SECRET_KEY", "change-me")
ALGORITHM = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

# Secreto compartido para los endpoints de cron. Sin valor => se rechaza todo.
CRON_SECRET = os.getenv("CRON_SECRET")

UPCOMING_DAYS = int(os.getenv("UPCOMING_DAYS", "3"))
NOTIFICATION_DEDUP_HOURS = int(os.getenv("NOTIFICATION_DEDUP_HOURS", "24"))
RECONCILE_EPSILON = float(os.getenv("RECONCILE_EPSILON", "0.01"))

BATCH_SAMPLE_LIMIT = int(os.getenv("BATCH_SAMPLE_LIMIT", "10"))
BATCH_MAX_ENTITIES = int(os.getenv("BATCH_MAX_ENTITIES", "500"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = _as_bool(os.getenv("LOG_JSON"), default=True)

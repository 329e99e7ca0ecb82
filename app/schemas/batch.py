# app/schemas/batch.py

from datetime import datetime
from typing import Any, Dict, List

from pydantic import BaseModel, Field, computed_field

from app.core import config


class BatchResult(BaseModel):
    """Resumen de una ejecución por lotes; las muestras van recortadas."""

    job: str
    started_at: datetime
    total: int = 0
    processed: int = 0
    fixed: int = 0
    skipped: int = 0
    errored: int = 0
    notifications: int = 0
    notifications_failed: int = 0
    changes: List[Dict[str, Any]] = Field(default_factory=list)
    errors: List[Dict[str, Any]] = Field(default_factory=list)
    sample_limit: int = Field(default_factory=lambda: config.BATCH_SAMPLE_LIMIT, exclude=True)

    @computed_field
    @property
    def success(self) -> bool:
        return self.errored == 0

    def record_change(self, change: Dict[str, Any]) -> None:
        if len(self.changes) < self.sample_limit:
            self.changes.append(change)

    def record_error(self, entity_id: Any, error: Exception) -> None:
        self.errored += 1
        if len(self.errors) < self.sample_limit:
            self.errors.append({"id": entity_id, "error": str(error)})


class BatchStatus(BaseModel):
    """Respuesta de los GET de estado: mismo cálculo, sin escribir nada."""

    job: str
    checked_at: datetime
    total: int = 0
    counts: Dict[str, int] = Field(default_factory=dict)
    samples: List[Dict[str, Any]] = Field(default_factory=list)

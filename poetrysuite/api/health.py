"""Liveness and readiness checks."""

from fastapi import APIRouter
from sqlalchemy import inspect

from poetrysuite.core.database import check_connection, get_engine
from poetrysuite.features.records.store import InMemoryRecordStore, get_record_store

router = APIRouter(tags=["health"])

REQUIRED_TABLES = ("poems", "daily_writing_logs", "writing_streaks", "user_achievements")


@router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@router.get("/readyz")
def readyz():
    """Readiness: which record store is active and, for SQL, whether its tables exist."""
    store = get_record_store()
    if isinstance(store, InMemoryRecordStore):
        return {"ok": True, "store": "memory", "tables_present": []}

    if not check_connection():
        return {"ok": False, "store": "sql", "tables_present": []}
    present = set(inspect(get_engine()).get_table_names())
    tables = [t for t in REQUIRED_TABLES if t in present]
    return {"ok": len(tables) == len(REQUIRED_TABLES), "store": "sql", "tables_present": tables}

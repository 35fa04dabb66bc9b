# poetrysuite/conftest.py
import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Make the project root importable when pytest runs from inside the package
PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from poetrysuite.core.database import build_engine, create_all_tables, drop_all_tables  # noqa: E402
from poetrysuite.features.records.store import InMemoryRecordStore, set_record_store  # noqa: E402


@pytest.fixture
def fixed_now():
    """Fixed timestamp for deterministic testing (a Wednesday afternoon)."""
    return datetime(2024, 1, 3, 15, 30, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def memory_store():
    """Fresh in-memory record store installed as the shared store for each test."""
    store = InMemoryRecordStore()
    set_record_store(store)
    yield store
    set_record_store(None)


@pytest.fixture
def sqlite_engine():
    """In-memory SQLite engine with the writing tables created."""
    engine = build_engine("sqlite://")
    create_all_tables(engine)
    yield engine
    drop_all_tables(engine)
    engine.dispose()


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Yield to the event loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


@pytest.fixture
def eventually():
    return wait_until

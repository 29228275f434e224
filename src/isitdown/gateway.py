"""
Persistence gateway: connectivity check and per-table change notifications.

Services write rows through SQLAlchemy sessions and publish a change event
afterwards; in-memory views (the outage board) subscribe to re-fetch.
"""
import inspect
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from isitdown.database import get_engine

logger = logging.getLogger("isitdown.gateway")

TABLES = ("websites", "incidents", "outage_reports")


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    action: str  # insert, update, delete
    row_id: Optional[str] = None


ChangeCallback = Callable[[ChangeEvent], Union[None, Awaitable[None]]]

_subscribers: dict[str, list[ChangeCallback]] = defaultdict(list)


async def is_connected() -> bool:
    """Return True when the database answers a trivial query."""
    engine = get_engine()
    if engine is None:
        return False
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"Database is not reachable: {e}")
        return False
    return True


def subscribe(table: str, callback: ChangeCallback) -> None:
    if table not in TABLES:
        raise ValueError(f"Unknown table: {table}")
    _subscribers[table].append(callback)


def unsubscribe(table: str, callback: ChangeCallback) -> None:
    try:
        _subscribers[table].remove(callback)
    except ValueError:
        pass


def clear_subscriptions() -> None:
    _subscribers.clear()


async def publish(table: str, action: str, row_id: Optional[str] = None) -> None:
    """Notify subscribers of ``table``. Subscriber failures are logged only."""
    event = ChangeEvent(table=table, action=action, row_id=row_id)
    for callback in list(_subscribers.get(table, ())):
        try:
            result = callback(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"Change subscriber failed for {table}/{action}")

from __future__ import annotations
"""Database retry wrapper — timeout race plus bounded exponential-backoff retries.

Only a classified set of transient failures is retried (timeouts, dropped
connections, serialization failures, deadlocks). Constraint and schema errors
propagate on the first attempt.
"""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from sqlalchemy.exc import DBAPIError, DisconnectionError

from sora_studio.config import get_settings
from sora_studio.exceptions import DatabaseConnectionError, DatabaseTimeoutError

logger = logging.getLogger(__name__)
settings = get_settings()

T = TypeVar("T")

# PostgreSQL SQLSTATE codes
RETRYABLE_SQLSTATES = frozenset({
    "57014",  # statement timeout
    "08006",  # connection failure
    "08003",  # connection does not exist
    "08001",  # unable to establish connection
    "08004",  # server rejected connection
    "08007",  # transaction resolution unknown
    "08P01",  # protocol violation
    "40001",  # serialization failure
    "40P01",  # deadlock detected
    "53300",  # too many connections
})

NON_RETRYABLE_SQLSTATES = frozenset({
    "23505",  # unique violation
    "23503",  # foreign key violation
    "23502",  # not null violation
    "23514",  # check violation
    "42P01",  # undefined table
    "42703",  # undefined column
    "42883",  # undefined function
})

# MySQL server / client error numbers
RETRYABLE_MYSQL_ERRORS = frozenset({
    1205,  # lock wait timeout
    1213,  # deadlock
    1040,  # too many connections
    2002,  # can't connect through socket
    2003,  # can't connect to server
    2006,  # server has gone away
    2013,  # lost connection during query
})

NON_RETRYABLE_MYSQL_ERRORS = frozenset({
    1062,  # duplicate entry
    1452,  # foreign key constraint fails
    1048,  # column cannot be null
    3819,  # check constraint violated
    1146,  # table doesn't exist
    1054,  # unknown column
})

_CONNECTION_MYSQL_ERRORS = frozenset({1040, 2002, 2003, 2006, 2013})


def _error_code(error: BaseException) -> str | int | None:
    """Pull a SQLSTATE or MySQL errno out of a driver or SQLAlchemy exception."""
    # SQLAlchemy wrappers carry the driver exception on .orig
    orig = getattr(error, "orig", None)
    candidates: list[Any] = [orig] if orig is not None else [error]

    for exc in candidates:
        for attr in ("sqlstate", "pgcode", "code"):
            value = getattr(exc, attr, None)
            if isinstance(value, (str, int)) and value != "":
                return value
        args = getattr(exc, "args", ())
        if args and isinstance(args[0], int):
            return args[0]
    return None


def _message(error: BaseException) -> str:
    return str(error).lower()


def should_retry_error(error: BaseException | None) -> bool:
    """Return True when `error` is a transient failure worth another attempt."""
    if error is None:
        return False
    if isinstance(error, (DatabaseTimeoutError, asyncio.TimeoutError, ConnectionError)):
        return True
    if isinstance(error, DisconnectionError):
        return True
    if isinstance(error, DBAPIError) and error.connection_invalidated:
        return True

    code = _error_code(error)
    if code is not None:
        if code in NON_RETRYABLE_SQLSTATES or code in NON_RETRYABLE_MYSQL_ERRORS:
            return False
        if code in RETRYABLE_SQLSTATES or code in RETRYABLE_MYSQL_ERRORS:
            return True

    message = _message(error)
    return "timeout" in message or "timed out" in message or "connection" in message


def is_connection_error(error: BaseException) -> bool:
    """Return True for failures that mean the database is unreachable."""
    if isinstance(error, DatabaseTimeoutError):
        return False
    if isinstance(error, (ConnectionError, DisconnectionError)):
        return True
    if isinstance(error, DBAPIError) and error.connection_invalidated:
        return True

    code = _error_code(error)
    if isinstance(code, str) and (code.startswith("08") or code == "53300"):
        return True
    if code in _CONNECTION_MYSQL_ERRORS:
        return True
    if code in NON_RETRYABLE_SQLSTATES or code in NON_RETRYABLE_MYSQL_ERRORS:
        return False
    return "connection" in _message(error)


def calculate_retry_delay(attempt: int, base_delay: float | None = None) -> float:
    """Exponential backoff: base * multiplier ** (attempt - 1), attempt starting at 1."""
    base = settings.DB_RETRY_DELAY if base_delay is None else base_delay
    return base * (settings.DB_RETRY_BACKOFF ** (attempt - 1))


def _log_metrics(operation_name: str, duration: float, success: bool) -> None:
    if duration > settings.DB_SLOW_QUERY_THRESHOLD:
        logger.warning(
            "Slow database operation: %s took %.0fms (%s)",
            operation_name, duration * 1000, "success" if success else "failed",
        )
    elif settings.DEBUG:
        logger.debug(
            "%s took %.0fms (%s)",
            operation_name, duration * 1000, "success" if success else "failed",
        )


async def execute_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    retries: int | None = None,
    timeout: float | None = None,
    retry_delay: float | None = None,
    operation_name: str = "database_operation",
) -> T:
    """Run `operation` with a timeout race and bounded retries.

    `operation` is called afresh on every attempt, so it must open its own
    session. Timeouts surface as DatabaseTimeoutError, unreachable databases
    as DatabaseConnectionError; anything else is re-raised unchanged.
    """
    retries = settings.DB_MAX_RETRIES if retries is None else retries
    timeout = settings.DB_QUERY_TIMEOUT if timeout is None else timeout
    start = time.monotonic()

    for attempt in range(retries + 1):
        try:
            try:
                result = await asyncio.wait_for(operation(), timeout=timeout)
            except asyncio.TimeoutError as exc:
                raise DatabaseTimeoutError(
                    f"Operation timed out after {timeout}s"
                ) from exc
        except Exception as exc:
            if should_retry_error(exc) and attempt < retries:
                delay = calculate_retry_delay(attempt + 1, retry_delay)
                logger.warning(
                    "%s attempt %d/%d failed: %s (retrying in %.1fs)",
                    operation_name, attempt + 1, retries + 1, exc, delay,
                )
                await asyncio.sleep(delay)
                continue

            _log_metrics(operation_name, time.monotonic() - start, False)
            if is_connection_error(exc) and not isinstance(exc, DatabaseConnectionError):
                raise DatabaseConnectionError(
                    f"Database connection failed: {exc}"
                ) from exc
            raise

        _log_metrics(operation_name, time.monotonic() - start, True)
        return result

    # Unreachable: the loop either returns or raises on the last attempt
    raise DatabaseConnectionError(f"{operation_name} failed after {retries} retries")

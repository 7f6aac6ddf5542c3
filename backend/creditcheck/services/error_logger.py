"""Failure recording for bureau calls and request handling.

Every failure goes to the ``creditcheck.errors`` logger. When a session is
supplied it is also written to ``error_logs`` so operators can line a
failed verification up with its bureau transaction::

    except BureauError as exc:
        await log_error(exc, db=db, source="credit_report.fetch", transaction_id=txn)
"""

from __future__ import annotations

import logging
import traceback
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from creditcheck.models.error_log import ErrorLog, ErrorSeverity

logger = logging.getLogger("creditcheck.errors")

MESSAGE_LIMIT = 2000
TRACEBACK_LIMIT = 10000


def _sanitize_text(value: object, *, max_len: Optional[int] = None) -> str:
    """Blank out control characters other than line breaks and tabs."""
    cleaned = "".join(" " if ch < " " and ch not in "\t\r\n" else ch for ch in str(value))
    return cleaned if max_len is None else cleaned[:max_len]


def _clip(value: Optional[str], limit: int) -> Optional[str]:
    return _sanitize_text(value, max_len=limit) if value else None


def _origin(exc: BaseException) -> Optional[str]:
    """file:function:line of the innermost frame the exception passed through."""
    tb = exc.__traceback__
    if tb is None:
        return None
    while tb.tb_next is not None:
        tb = tb.tb_next
    code = tb.tb_frame.f_code
    return f"{code.co_filename}:{code.co_name}:{tb.tb_lineno}"


async def log_error(
    exc: Exception,
    *,
    db: Optional[AsyncSession] = None,
    severity: ErrorSeverity = ErrorSeverity.ERROR,
    source: Optional[str] = None,
    request_method: Optional[str] = None,
    request_path: Optional[str] = None,
    status_code: Optional[int] = None,
    response_time_ms: Optional[float] = None,
    bureau_provider: Optional[str] = None,
    transaction_id: Optional[str] = None,
    user_id: Optional[int] = None,
    ip_address: Optional[str] = None,
) -> Optional[ErrorLog]:
    """Log ``exc`` and, with a session, flush an ErrorLog row for it.

    Returns the row, or None when there was no session or the write failed.
    A failed write is only logged; the caller's own error handling proceeds.
    """
    kind = type(exc).__name__
    message = _sanitize_text(exc, max_len=MESSAGE_LIMIT)

    where = f"{request_method or '?'} {request_path} " if request_path else ""
    txn = f" [txn {transaction_id}]" if transaction_id else ""
    logger.error("%s%s (%s): %s%s", where, kind, severity.value, message, txn, exc_info=exc)

    if db is None:
        return None

    entry = ErrorLog(
        severity=severity,
        error_type=kind,
        message=message,
        traceback=_sanitize_text(
            "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
            max_len=TRACEBACK_LIMIT,
        ),
        source=_clip(source or _origin(exc), 300),
        bureau_provider=bureau_provider,
        transaction_id=_clip(transaction_id, 100),
        user_id=user_id,
        request_method=request_method,
        request_path=_clip(request_path, 500),
        status_code=status_code,
        response_time_ms=response_time_ms,
        ip_address=_clip(ip_address, 45),
    )
    try:
        db.add(entry)
        await db.flush()
    except Exception as db_err:
        logger.warning("Could not persist %s to error_logs: %s", kind, db_err)
        return None
    return entry


async def log_error_standalone(exc: Exception, **context) -> Optional[ErrorLog]:
    """Same as log_error, on a session of its own that is committed here."""
    from creditcheck.database import async_session

    try:
        async with async_session() as db:
            entry = await log_error(exc, db=db, **context)
            await db.commit()
    except Exception as db_err:
        logger.warning("Standalone error log failed: %s", db_err)
        return None
    return entry

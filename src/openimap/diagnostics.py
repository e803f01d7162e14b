"""Process-wide error and alert log.

Facade calls never raise for protocol, authentication or input failures;
they return ``False`` and leave a message here. ``errors()`` and ``alerts()``
drain their queues, ``last_error()`` does not.
"""
from __future__ import annotations

import functools
import imaplib
import threading
from collections import deque
from typing import Any, Callable, Deque, List, Optional, TypeVar, Union

from loguru import logger

from openimap.config import get_settings
from openimap.errors import ConnectionClosedError, OpenIMAPError

F = TypeVar("F", bound=Callable[..., Any])

_lock = threading.Lock()
_errors: Deque[str] = deque()
_alerts: Deque[str] = deque()
_last_error: Optional[str] = None


def _cap() -> int:
    return get_settings().max_log_entries


def record_error(message: str) -> None:
    global _last_error
    cap = _cap()
    with _lock:
        _errors.append(message)
        while len(_errors) > cap:
            _errors.popleft()
        _last_error = message
    logger.warning("imap error: {}", message)


def record_alert(message: str) -> None:
    cap = _cap()
    with _lock:
        _alerts.append(message)
        while len(_alerts) > cap:
            _alerts.popleft()
    logger.info("imap alert: {}", message)


def errors() -> Union[List[str], bool]:
    with _lock:
        if not _errors:
            return False
        out = list(_errors)
        _errors.clear()
        return out


def alerts() -> Union[List[str], bool]:
    with _lock:
        if not _alerts:
            return False
        out = list(_alerts)
        _alerts.clear()
        return out


def last_error() -> Union[str, bool]:
    with _lock:
        return _last_error if _last_error is not None else False


def reset() -> None:
    """Clear every queue and the last-error slot."""
    global _last_error
    with _lock:
        _errors.clear()
        _alerts.clear()
        _last_error = None


def returns_false_on_failure(fn: F) -> F:
    """Turn internal failures into the ``False`` sentinel plus a log entry.

    Using a closed connection is a programming error and still raises.
    """

    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except ConnectionClosedError:
            raise
        except (OpenIMAPError, imaplib.IMAP4.error, OSError, ValueError) as e:
            record_error(str(e) or e.__class__.__name__)
            return False

    return wrapper  # type: ignore[return-value]

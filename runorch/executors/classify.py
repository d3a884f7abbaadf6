"""Failure classification for remote job execution."""

from __future__ import annotations

import errno
from collections.abc import Iterator

TIMEOUT_CLASS_NAMES = frozenset(
    {
        "TimeoutError",
        "AbortError",
        "TimeoutException",
        "ConnectTimeout",
        "ReadTimeout",
        "WriteTimeout",
        "PoolTimeout",
    }
)
TIMEOUT_CODES = frozenset({"ETIMEDOUT", "ECONNABORTED", "TIMEOUT"})
TIMEOUT_ERRNOS = frozenset({errno.ETIMEDOUT, errno.ECONNABORTED})
MESSAGE_TOKENS = ("timeout", "etimedout", "econnaborted")


def iter_error_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield ``exc`` and its causes, preferring ``__cause__`` over ``__context__``."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__ if current.__cause__ is not None else current.__context__


def _has_timeout_signature(error: BaseException) -> bool:
    if any(cls.__name__ in TIMEOUT_CLASS_NAMES for cls in type(error).__mro__):
        return True
    for attr in ("code", "remote_code"):
        code = getattr(error, attr, None)
        if isinstance(code, str) and code.upper() in TIMEOUT_CODES:
            return True
    err_no = getattr(error, "errno", None)
    if isinstance(err_no, int) and err_no in TIMEOUT_ERRNOS:
        return True
    return isinstance(err_no, str) and err_no.upper() in TIMEOUT_CODES


def is_timeout_error(exc: BaseException) -> bool:
    """Return True when any error in the chain looks like a timeout or abort.

    Structural signals (class name, ``code``, ``errno``) are checked across the
    whole chain first; message text is only consulted when none match.
    """
    chain = list(iter_error_chain(exc))
    if any(_has_timeout_signature(error) for error in chain):
        return True
    for error in chain:
        message = str(error).lower()
        if any(token in message for token in MESSAGE_TOKENS):
            return True
    return False

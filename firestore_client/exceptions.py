"""Error taxonomy for the Firestore client.

Driver and codec exceptions are caught at each operation boundary and
re-raised as FirestoreError, so callers never see raw driver errors.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from types import TracebackType

import structlog
from google.api_core.exceptions import GoogleAPICallError

logger = structlog.get_logger(__name__)


class FirestoreError(Exception):
    """Single error kind raised by the client.

    Attributes:
        message: Human-readable description.
        code: Driver-reported error code (e.g. ``"NOT_FOUND"``), if any.
        origin: Traceback of the failure site, if any.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        origin: TracebackType | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.origin = origin
        super().__init__(message)

    @classmethod
    def from_google_api_error(cls, exc: GoogleAPICallError) -> FirestoreError:
        """Build an error by copying code, message and trace from a driver error.

        Args:
            exc: Error raised by the Firestore driver.

        Returns:
            Translated error.
        """
        return cls(
            message=exc.message or "Firestore error occurred.",
            code=_error_code(exc),
            origin=exc.__traceback__,
        )

    @classmethod
    def from_exception(cls, exc: BaseException, message: str) -> FirestoreError:
        """Translate any exception raised inside an operation.

        Args:
            exc: The original exception.
            message: What the operation was doing (e.g. "Failed to read document").

        Returns:
            The same error if it is already a FirestoreError, else a translated one.
        """
        if isinstance(exc, FirestoreError):
            return exc
        if isinstance(exc, GoogleAPICallError):
            detail = exc.message or str(exc)
            code = _error_code(exc)
        else:
            detail = str(exc) or type(exc).__name__
            code = None
        error = cls(message=f"{message}: {detail}", code=code, origin=exc.__traceback__)
        error.__cause__ = exc
        return error

    def __repr__(self) -> str:
        return f"FirestoreError(message={self.message!r}, code={self.code!r})"


def _error_code(exc: GoogleAPICallError) -> str | None:
    status = exc.grpc_status_code
    if status is not None:
        return status.name
    if exc.code is not None:
        return str(exc.code)
    return None


@contextmanager
def translate_errors(message: str, **log_context: object) -> Iterator[None]:
    """Re-raise anything raised in the block as FirestoreError.

    Args:
        message: Operation description used as the error message prefix.
        **log_context: Extra fields for the failure log line.

    Raises:
        FirestoreError: On any failure inside the block.
    """
    try:
        yield
    except FirestoreError:
        raise
    except Exception as e:
        error = FirestoreError.from_exception(e, message)
        logger.warning(
            "firestore_operation_failed",
            operation=message,
            error=error.message,
            code=error.code,
            **log_context,
        )
        raise error from e

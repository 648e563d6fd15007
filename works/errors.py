"""Exception hierarchy for the works engine.

Only two of these normally reach a caller: ``InvalidIdentifierError`` (a
malformed detail id, rejected before any query runs) and
``WorkNotFoundError``.  ``QueryTimeoutError`` and ``PoolExhaustedError``
are raised inside aggregate passes and payment lookups, where they are
converted into degraded defaults; a detail lookup lets
``PoolExhaustedError`` propagate.
"""


class WorksError(Exception):
    """Base class for all works-engine errors."""


class InvalidIdentifierError(WorksError, ValueError):
    """A detail lookup received an identifier that is not 24 hex characters."""

    def __init__(self, identifier: str) -> None:
        super().__init__(f"Invalid work ID format: {identifier!r}")
        self.identifier = identifier


class WorkNotFoundError(WorksError, LookupError):
    """A detail or payment lookup matched no record."""

    def __init__(self, message: str, identifier=None) -> None:
        super().__init__(message)
        self.identifier = identifier


class QueryTimeoutError(WorksError):
    """An aggregate pass exceeded its time budget."""

    def __init__(self, pass_name: str, timeout_ms: int) -> None:
        super().__init__(f"{pass_name} pass exceeded {timeout_ms} ms")
        self.pass_name = pass_name
        self.timeout_ms = timeout_ms


class PoolExhaustedError(WorksError):
    """No pooled connection became free within the acquire timeout."""

    def __init__(self, db_path, timeout: float) -> None:
        super().__init__(f"No connection to {db_path} free after {timeout:g} s")
        self.timeout = timeout

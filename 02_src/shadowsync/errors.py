"""Error taxonomy for the sync client."""


class SyncError(Exception):
    """Base class for all sync client errors."""


class TransportError(SyncError):
    """Broker connection dropped, refused or timed out.

    Recovered by the transport's scheduled reconnect; only reported through
    the on_error callback, never raised to callers.
    """


class ProtocolViolation(SyncError):
    """An operation was attempted that the sync protocol does not allow."""

    def __init__(self, message: str, reasons: list[str] | None = None):
        super().__init__(message)
        self.reasons = reasons or [message]


class UnknownConflict(ProtocolViolation):
    """Resolution requested for a conflict id that does not exist."""

    def __init__(self, conflict_id: str):
        super().__init__(f"Unknown conflict: {conflict_id}")
        self.conflict_id = conflict_id


class RemoteFailure(SyncError):
    """The deployment endpoint rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

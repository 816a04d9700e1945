"""Error taxonomy for portal reconciliation and push delivery."""


class ResultWatchError(Exception):
    """Base class for all resultwatch errors."""


class ReconcileError(ResultWatchError):
    """A failure that ends one account's reconciliation pass."""

    kind = "ReconcileError"


class AuthError(ReconcileError):
    """Bad credentials, or the portal rejected the login."""

    kind = "AuthError"


class FetchError(ReconcileError):
    """Navigation to a portal page failed or timed out."""

    kind = "FetchError"


class ExtractionError(ReconcileError):
    """Reserved: extraction never fails on a well-formed document."""

    kind = "ExtractionError"


class BatchTimeoutError(ReconcileError):
    """The batch deadline passed before the account's pass finished."""

    kind = "BatchTimeoutError"


class AcknowledgmentError(ResultWatchError):
    """Marking an item as seen on the portal failed. Logged, never fatal."""

    kind = "AcknowledgmentError"


class DeliveryError(ResultWatchError):
    """The push vendor rejected a message or could not be reached."""

    kind = "DeliveryError"

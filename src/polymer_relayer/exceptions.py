"""
Error taxonomy for the Polymer relayer.

Every error raised while relaying a single event derives from RelayError so the
chain listener can contain it at the per-event boundary.
"""


class RelayError(Exception):
    """Base class for failures of a single relay attempt."""


class ConfigurationError(RelayError, ValueError):
    """Configuration is invalid or a destination chain cannot be resolved."""


class ProofRequestError(RelayError):
    """The proof service rejected a request or returned an unusable response."""


class ProofTimeoutError(RelayError):
    """The proof never became ready within the attempt ceiling."""

    def __init__(self, job_id: str, attempts: int) -> None:
        self.job_id = job_id
        self.attempts = attempts
        super().__init__(f"Proof for job {job_id} not ready after {attempts} polls")


class SubmissionError(RelayError):
    """Gas estimation, dispatch or confirmation failed on the destination chain.

    Attributes:
        sent: Whether the transaction may have been dispatched. When True the
            destination state is ambiguous and the transaction may still land.
        transaction_hash: Hash of the dispatched transaction, if known
    """

    def __init__(self, message: str, *, sent: bool = False, transaction_hash: str | None = None) -> None:
        self.sent = sent
        self.transaction_hash = transaction_hash
        super().__init__(message)

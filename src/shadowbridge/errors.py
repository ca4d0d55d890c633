"""Error taxonomy for the relay pipeline and the destination ledger."""


class RelayError(Exception):
    """Base class for all relay errors."""

    pass


class ValidationError(RelayError):
    """Raised when a transfer request is rejected before any record exists."""

    pass


class MissingProofError(ValidationError):
    """Raised when one of the three compliance proofs is absent."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Missing {field}")


class VerificationError(RelayError):
    """Raised when a proof bundle fails verification."""

    pass


class NotConfiguredError(RelayError):
    """Raised when the chain client lacks its endpoint, contract or key."""

    pass


class TransientChainError(RelayError):
    """Network or RPC failure while submitting to the destination chain."""

    pass


class InvalidTransitionError(RelayError):
    """Raised when a status change would regress or touch a terminal record."""

    pass


class SettlementError(RelayError):
    """The destination ledger rejected a settlement."""

    pass


class AuthorizationError(SettlementError):
    """Caller is not the configured relayer."""

    pass


class AlreadyProcessedError(SettlementError):
    """The message hash was already consumed on the destination ledger.

    Means the underlying intent already settled, possibly by a racing
    submitter, so callers treat it as success-equivalent.
    """

    def __init__(self, message_hash: str):
        self.message_hash = message_hash
        super().__init__(f"Already processed: {message_hash}")


class InvalidAmountError(SettlementError):
    """Settlement amount must be greater than zero."""

    pass


class InvalidRecipientError(SettlementError):
    """Settlement recipient is the zero identity."""

    pass

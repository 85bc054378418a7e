"""
Exception handling utilities.

Defines the error taxonomy of the sync engine and categorized
exception types for choosing a handling strategy.
"""

from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
)
from sqlalchemy.exc import TimeoutError as PoolTimeoutError


class MintSyncError(Exception):
    """Base class for all engine errors."""


# ------------------------------------------------------------------------
# Ledger errors
# ------------------------------------------------------------------------


class LedgerError(MintSyncError):
    """Base exception for ledger (JSON-RPC) errors."""


class LedgerTransientError(LedgerError):
    """RPC timeout, rate limit or node desync. Safe to retry."""


class LedgerTimeoutError(LedgerTransientError):
    """Raised when a ledger call exceeds its bounded timeout."""


class LedgerUnavailableError(LedgerTransientError):
    """Raised when every configured RPC provider failed."""


class TokenNotFoundError(LedgerError):
    """ownerOf(id) reverted: the token does not exist (one confirmation)."""

    def __init__(self, token_id: int | str, reason: str | None = None) -> None:
        self.token_id = str(token_id)
        self.reason = reason
        super().__init__(f"Token #{token_id} not found: {reason or 'reverted'}")


class TokenURIRevertedError(LedgerError):
    """tokenURI(id) reverted or returned an empty value."""

    def __init__(self, token_id: int | str, reason: str | None = None) -> None:
        self.token_id = str(token_id)
        self.reason = reason
        super().__init__(f"tokenURI(#{token_id}) failed: {reason or 'reverted'}")


class InconclusiveProbeError(LedgerError):
    """A probe could not decide whether a token exists."""

    def __init__(self, token_id: int, last_error: Exception | None = None) -> None:
        self.token_id = token_id
        self.last_error = last_error
        super().__init__(
            f"Probe for token #{token_id} inconclusive: {last_error}"
        )


# ------------------------------------------------------------------------
# Normalization errors
# ------------------------------------------------------------------------


class NormalizationError(MintSyncError):
    """Raw tokenURI could not be turned into a canonical record."""


# ------------------------------------------------------------------------
# Store errors
# ------------------------------------------------------------------------


class StoreError(MintSyncError):
    """Base exception for relational store failures."""


class TransientStoreError(StoreError):
    """Store unavailable or rate limited. Safe to retry."""


class PermanentStoreError(StoreError):
    """Constraint violation or other non-retryable store failure."""


# ------------------------------------------------------------------------
# Invariant violations
# ------------------------------------------------------------------------


class InvariantViolationError(MintSyncError):
    """A logic bug: a path that should be impossible was taken."""


class RegressionError(InvariantViolationError):
    """Attempt to move a checkpoint backwards."""

    def __init__(self, contract_address: str, current: int, requested: int) -> None:
        self.contract_address = contract_address
        self.current = current
        self.requested = requested
        super().__init__(
            f"Checkpoint regression for {contract_address}: "
            f"stored {current}, requested {requested}"
        )


class CreatorImmutableError(InvariantViolationError):
    """Attempt to change an NFT record's creator after creation."""


# ------------------------------------------------------------------------
# Exception categories based on handling strategy
# ------------------------------------------------------------------------

# Retry with backoff - the store may come back
TRANSIENT_STORE_ERRORS = (
    OperationalError,  # Connection dropped, server restarting
    InterfaceError,  # Driver-level connection failure
    PoolTimeoutError,  # Pool exhausted
    ConnectionError,
    TimeoutError,
    TransientStoreError,
)

# Markers the drivers put into rate-limit / overload messages
RATE_LIMIT_MARKERS = (
    "too many connections",
    "too many clients",
    "rate limit",
    "remaining connection slots",
    "sqlstate 53300",
)


def is_rate_limited(exc: BaseException) -> bool:
    """
    Check if an exception is a rate-limit / overload response.

    Args:
        exc: Exception to check

    Returns:
        True if the message matches a known rate-limit marker
    """
    message = str(exc).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


def is_transient_store_error(exc: BaseException) -> bool:
    """
    Check if a store exception should be retried.

    Args:
        exc: Exception to check

    Returns:
        True for connection, timeout and rate-limit failures
    """
    if isinstance(exc, IntegrityError):
        return False
    if isinstance(exc, TRANSIENT_STORE_ERRORS):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return is_rate_limited(exc)


def is_duplicate_key(exc: BaseException, constraint_name: str) -> bool:
    """
    Check if an exception is a unique violation of a given constraint.

    Args:
        exc: Exception to check
        constraint_name: Name of the unique constraint

    Returns:
        True if exc is an IntegrityError raised by that constraint
    """
    if not isinstance(exc, IntegrityError):
        return False
    orig = getattr(exc, "orig", None)
    reported = getattr(orig, "constraint_name", None)
    if reported:
        return reported == constraint_name
    return constraint_name in str(exc)

"""
RPC Wrapper with Timeout and Retry Logic.

Provides centralized timeout and retry functionality for ledger calls.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from loguru import logger

from mintsync.config.constants import (
    LEDGER_MAX_RETRIES,
    LEDGER_RETRY_DELAY_BASE,
    LEDGER_TIMEOUT,
)
from mintsync.utils.exceptions import LedgerTimeoutError, LedgerTransientError

T = TypeVar("T")


async def with_timeout(
    coro: Awaitable[T],
    timeout: float = LEDGER_TIMEOUT,
    operation_name: str = "RPC call",
) -> T:
    """
    Execute awaitable with timeout.

    Args:
        coro: Awaitable to execute
        timeout: Timeout in seconds (default: LEDGER_TIMEOUT)
        operation_name: Operation name for logging

    Returns:
        Result of the awaitable

    Raises:
        LedgerTimeoutError: If operation times out
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except TimeoutError as e:
        error_msg = f"{operation_name} timed out after {timeout}s"
        logger.warning(f"[Ledger] {error_msg}")
        raise LedgerTimeoutError(error_msg) from e


def backoff_delay(attempt: int, base: float = LEDGER_RETRY_DELAY_BASE) -> float:
    """
    Delay before the retry following attempt number `attempt` (1-based).

    Example: base=1 gives 1s, 2s, 4s, 8s...
    """
    return base * (2 ** (attempt - 1))


async def rpc_call_with_retry(
    coro_factory: Callable[[], Awaitable[Any]],
    max_retries: int = LEDGER_MAX_RETRIES,
    operation_name: str = "RPC call",
    delay_base: float = LEDGER_RETRY_DELAY_BASE,
) -> Any:
    """
    Execute a ledger call, retrying transient failures with backoff.

    Only `LedgerTransientError` is retried. Definitive answers such as a
    contract revert propagate immediately.

    Args:
        coro_factory: Factory function that returns a coroutine
        max_retries: Maximum number of attempts
        operation_name: Operation name for logging
        delay_base: First backoff delay in seconds

    Returns:
        Result of the call

    Raises:
        LedgerTransientError: If every attempt failed transiently
    """
    last_error: LedgerTransientError | None = None

    for attempt in range(1, max_retries + 1):
        try:
            result = await coro_factory()
            if attempt > 1:
                logger.success(
                    f"[Ledger] {operation_name} succeeded on attempt {attempt}"
                )
            return result

        except LedgerTransientError as e:
            last_error = e

            if attempt < max_retries:
                delay = backoff_delay(attempt, delay_base)
                logger.warning(
                    f"[Ledger] {operation_name} failed on attempt "
                    f"{attempt}/{max_retries}: {e}. Retrying in {delay}s..."
                )
                await asyncio.sleep(delay)
            else:
                logger.error(
                    f"[Ledger] {operation_name} failed after {max_retries} attempts: {e}"
                )

    raise last_error or LedgerTransientError(f"{operation_name}: no attempts made")

"""
Pending Mint Service - Statistics Module.

Module: stats.py
Queue statistics and the operator attention list.
"""

from mintsync.models.pending_mint import PendingMint


class PendingMintStatsManager:
    """Queue statistics management."""

    def __init__(self, pending_repo, policy) -> None:
        """Initialize stats manager."""
        self.pending_repo = pending_repo
        self.policy = policy

    async def get_queue_stats(self) -> dict:
        """
        Get queue statistics.

        Returns:
            Dict with total, claimed, attention_required, max_retry_count,
            oldest_attempt_at
        """
        return await self.pending_repo.get_queue_stats(
            self.policy.alert_after_attempts, self.policy.claim_lease_seconds
        )

    async def get_attention_required(self) -> list[PendingMint]:
        """
        Entries at or past the alert threshold.

        They keep being retried; this list is for operators.
        """
        return await self.pending_repo.get_attention_required(
            self.policy.alert_after_attempts
        )

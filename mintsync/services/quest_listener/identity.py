"""
Quest Listener - Identity Module.

Module: identity.py
Maps the wallet that emitted a quest event to a stable user ID.
"""

from typing import Protocol


class IdentityResolver(Protocol):
    """Resolve a wallet to a user ID, or None if it belongs to no user."""

    async def resolve(self, wallet_address: str) -> str | None: ...


class WalletIdentityResolver:
    """Default resolver: the lowercased wallet is the user ID."""

    async def resolve(self, wallet_address: str) -> str | None:
        if not wallet_address:
            return None
        return wallet_address.lower()


class MappingIdentityResolver:
    """Resolver backed by a wallet -> user mapping (e.g. linked accounts)."""

    def __init__(self, links: dict[str, str]) -> None:
        self.links = {wallet.lower(): user for wallet, user in links.items()}

    async def resolve(self, wallet_address: str) -> str | None:
        return self.links.get(wallet_address.lower())

"""
Metadata Resolver.

The impure edge of normalization: fetches IPFS-hosted metadata JSON
through the gateway list and hands the payload to the pure normalizer.
"""

from typing import Any

import aiohttp
from loguru import logger

from mintsync.config.constants import IPFS_GATEWAYS, METADATA_FETCH_TIMEOUT
from mintsync.utils.exceptions import NormalizationError

from .ipfs import gateway_urls
from .normalizer import classify_token_uri, loads_strict, normalize_payload
from .types import InlineJson, IpfsReference, NormalizedMetadata


class MetadataResolver:
    """Resolve a raw tokenURI into NormalizedMetadata."""

    def __init__(
        self,
        gateways: tuple[str, ...] = IPFS_GATEWAYS,
        timeout: float = METADATA_FETCH_TIMEOUT,
    ) -> None:
        """
        Initialize resolver.

        Args:
            gateways: IPFS gateways, preferred first
            timeout: Total timeout per gateway request in seconds
        """
        self.gateways = gateways
        self.timeout = timeout
        self._session: aiohttp.ClientSession | None = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self._session

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def resolve(self, raw_uri: str | None, token_id: int | str) -> NormalizedMetadata:
        """
        Normalize a tokenURI, fetching IPFS metadata when needed.

        Args:
            raw_uri: tokenURI value
            token_id: Token ID

        Returns:
            NormalizedMetadata

        Raises:
            NormalizationError: Unparseable value or metadata unavailable
        """
        variant = classify_token_uri(raw_uri)

        if isinstance(variant, InlineJson):
            payload = variant.payload
        elif isinstance(variant, IpfsReference):
            payload = await self.fetch_ipfs_json(variant)
        else:
            raise NormalizationError(f"Token #{token_id}: {variant.reason}")

        return normalize_payload(payload, token_id, self.gateways)

    async def fetch_ipfs_json(self, reference: IpfsReference) -> dict[str, Any]:
        """
        Fetch a JSON object from IPFS, trying gateways in order.

        Args:
            reference: IPFS reference

        Returns:
            Decoded JSON object

        Raises:
            NormalizationError: No gateway returned a JSON object
        """
        session = await self._get_session()
        errors = []

        for url in gateway_urls(f"ipfs://{reference.cid}", self.gateways):
            try:
                async with session.get(url) as response:
                    if response.status != 200:
                        errors.append(f"{url}: HTTP {response.status}")
                        continue
                    payload = await response.json(content_type=None, loads=loads_strict)
            except (aiohttp.ClientError, TimeoutError, ValueError) as e:
                errors.append(f"{url}: {type(e).__name__}")
                logger.debug(f"[Metadata] Gateway fetch failed for {url}: {e}")
                continue

            if isinstance(payload, dict):
                return payload
            errors.append(f"{url}: not a JSON object")

        raise NormalizationError(
            f"IPFS metadata {reference.cid} unavailable: {'; '.join(errors)}"
        )


def create_metadata_resolver() -> MetadataResolver:
    """Build a resolver from application settings."""
    from mintsync.config.settings import settings

    return MetadataResolver(
        gateways=settings.get_ipfs_gateways(),
        timeout=settings.metadata_fetch_timeout,
    )

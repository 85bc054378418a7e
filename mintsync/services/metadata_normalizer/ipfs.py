"""
IPFS reference helpers.

Recognizes `ipfs://<cid>`, gateway URLs containing `/ipfs/<cid>` and
bare CIDs, and rebuilds gateway URLs from the preferred gateway down.
"""

import re

from mintsync.config.constants import IPFS_GATEWAYS

_GATEWAY_PATH = re.compile(r"/ipfs/([A-Za-z0-9]+(?:/[^?#]*)?)")
_PROTOCOL_PATH = re.compile(r"^([A-Za-z0-9]+(?:/[^?#]*)?)$")
# CIDv0 (base58 "Qm...") or CIDv1 (base32 "b...")
_BARE_CID = re.compile(r"^(Qm[1-9A-HJ-NP-Za-km-z]{44}|b[a-z2-7]{50,})$")


def extract_ipfs_hash(url: str | None) -> str | None:
    """
    Extract the CID (and any path after it) from an IPFS reference.

    Args:
        url: ipfs:// URL, gateway URL or bare CID

    Returns:
        CID with optional path, or None if not an IPFS reference

    Examples:
        >>> extract_ipfs_hash("ipfs://QmHash/1.json")
        'QmHash/1.json'
        >>> extract_ipfs_hash("https://example.com/image.png") is None
        True
    """
    if not url:
        return None
    url = url.strip()

    if url.startswith("ipfs://"):
        rest = url[len("ipfs://"):]
        if rest.startswith("ipfs/"):
            rest = rest[len("ipfs/"):]
        match = _PROTOCOL_PATH.match(rest)
        return match.group(1) if match else None

    match = _GATEWAY_PATH.search(url)
    if match:
        return match.group(1)

    if url.startswith(("http://", "https://")):
        return None

    if _BARE_CID.match(url):
        return url
    return None


def is_ipfs_url(url: str | None) -> bool:
    """Check if a URL points at IPFS content."""
    return extract_ipfs_hash(url) is not None


def gateway_url(
    url: str,
    gateways: tuple[str, ...] = IPFS_GATEWAYS,
    gateway_index: int = 0,
) -> str:
    """
    Rewrite an IPFS reference against a gateway.

    Plain HTTP(S) URLs are returned unchanged.

    Args:
        url: Any image or metadata reference
        gateways: Gateways, preferred first
        gateway_index: Which gateway to use (falls back to the first)

    Returns:
        Gateway URL
    """
    cid = extract_ipfs_hash(url)
    if not cid or not gateways:
        return url
    gateway = gateways[gateway_index] if gateway_index < len(gateways) else gateways[0]
    return f"{gateway.rstrip('/')}/{cid}"


def gateway_urls(url: str, gateways: tuple[str, ...] = IPFS_GATEWAYS) -> list[str]:
    """
    Every gateway form of an IPFS reference, in fallback order.

    Args:
        url: Any image or metadata reference

    Returns:
        Gateway URLs, or `[url]` if it is not an IPFS reference
    """
    cid = extract_ipfs_hash(url)
    if not cid:
        return [url]
    return [f"{gateway.rstrip('/')}/{cid}" for gateway in gateways]

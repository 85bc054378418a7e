"""
Metadata Normalizer.

Turns a raw tokenURI (inline base64 JSON data URI or IPFS reference)
into a canonical NFT metadata record.

Module Structure:
- types.py: Tagged tokenURI variant and NormalizedMetadata
- ipfs.py: IPFS reference parsing and gateway URLs
- normalizer.py: Pure classification and normalization
- resolver.py: IPFS fetch via aiohttp
"""

from .ipfs import extract_ipfs_hash, gateway_url, gateway_urls, is_ipfs_url
from .normalizer import (
    classify_token_uri,
    loads_strict,
    normalize_payload,
    normalize_token_uri,
    parse_coordinate,
)
from .resolver import MetadataResolver, create_metadata_resolver
from .types import (
    InlineJson,
    IpfsReference,
    NormalizedMetadata,
    TokenURI,
    Unparseable,
)

__all__ = [
    "InlineJson",
    "IpfsReference",
    "MetadataResolver",
    "NormalizedMetadata",
    "TokenURI",
    "Unparseable",
    "classify_token_uri",
    "create_metadata_resolver",
    "extract_ipfs_hash",
    "gateway_url",
    "gateway_urls",
    "is_ipfs_url",
    "loads_strict",
    "normalize_payload",
    "normalize_token_uri",
    "parse_coordinate",
]

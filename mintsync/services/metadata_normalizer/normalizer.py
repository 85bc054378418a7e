"""
Metadata Normalizer.

Pure functions from a raw tokenURI to a canonical metadata record.
Nothing here performs I/O or keeps state: the same input always gives
the same output.
"""

import base64
import binascii
import json
import math
from typing import Any

from mintsync.config.constants import (
    DATA_URI_JSON_BASE64_PREFIX,
    DEFAULT_CATEGORY,
    DEFAULT_LOCATION,
    DEFAULT_TITLE_TEMPLATE,
    IPFS_GATEWAYS,
)
from mintsync.utils.exceptions import NormalizationError

from .ipfs import extract_ipfs_hash, gateway_url
from .types import (
    InlineJson,
    IpfsReference,
    NormalizedMetadata,
    TokenURI,
    Unparseable,
)

# Attribute trait types that populate typed columns (compared case-insensitively)
TRAIT_CATEGORY = "category"
TRAIT_LOCATION = "location"
TRAIT_LATITUDE = "latitude"
TRAIT_LONGITUDE = "longitude"
KNOWN_TRAITS = frozenset(
    {TRAIT_CATEGORY, TRAIT_LOCATION, TRAIT_LATITUDE, TRAIT_LONGITUDE}
)

MAX_LATITUDE = 90.0
MAX_LONGITUDE = 180.0


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-standard constant {name}")


def _parse_finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"number {text} out of range")
    return value


def loads_strict(text: str | bytes) -> Any:
    """
    Decode JSON, rejecting NaN, Infinity and overflowing numbers.

    The raw payload is stored in a JSONB column, which only accepts
    standard JSON.

    Raises:
        ValueError: Malformed or non-standard JSON
    """
    return json.loads(
        text, parse_constant=_reject_constant, parse_float=_parse_finite_float
    )


def classify_token_uri(raw: str | None) -> TokenURI:
    """
    Classify a raw tokenURI value.

    Args:
        raw: tokenURI as returned by the contract

    Returns:
        InlineJson, IpfsReference or Unparseable
    """
    if raw is None or not raw.strip():
        return Unparseable("empty tokenURI")

    value = raw.strip()

    if value.startswith(DATA_URI_JSON_BASE64_PREFIX):
        encoded = value[len(DATA_URI_JSON_BASE64_PREFIX):]
        # Unpadded base64 is accepted
        encoded += "=" * (-len(encoded) % 4)
        try:
            decoded = base64.b64decode(encoded, validate=True).decode("utf-8")
        except (binascii.Error, ValueError) as e:
            return Unparseable(f"invalid base64 payload: {e}")
        try:
            payload = loads_strict(decoded)
        except json.JSONDecodeError as e:
            return Unparseable(f"malformed JSON: {e.msg} at position {e.pos}")
        except ValueError as e:
            return Unparseable(f"malformed JSON: {e}")
        if not isinstance(payload, dict):
            return Unparseable(
                f"payload is a JSON {type(payload).__name__}, expected an object"
            )
        return InlineJson(payload)

    if value.startswith("data:"):
        return Unparseable(f"unsupported data URI: {value[:40]}")

    cid = extract_ipfs_hash(value)
    if cid:
        return IpfsReference(cid)

    return Unparseable(f"unsupported tokenURI: {value[:80]}")


def parse_coordinate(value: Any, limit: float) -> float | None:
    """
    Parse a latitude/longitude value.

    Any parse failure, non-finite value or value outside [-limit, limit]
    yields None: geodata is optional.

    Args:
        value: Raw attribute value
        limit: 90 for latitude, 180 for longitude

    Returns:
        Coordinate rounded to 8 decimals, or None
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or abs(number) > limit:
        return None
    return round(number, 8)


def _attribute_pairs(attributes: Any) -> tuple[tuple[str, Any], ...]:
    """`[{trait_type, value}, ...]` to ordered pairs; malformed entries skipped."""
    if not isinstance(attributes, list):
        return ()
    pairs = []
    for entry in attributes:
        if not isinstance(entry, dict):
            continue
        trait_type = entry.get("trait_type")
        if not isinstance(trait_type, str):
            continue
        pairs.append((trait_type, entry.get("value")))
    return tuple(pairs)


def _known_traits(pairs: tuple[tuple[str, Any], ...]) -> dict[str, Any]:
    """First occurrence of each known trait wins."""
    known: dict[str, Any] = {}
    for trait_type, value in pairs:
        key = trait_type.strip().lower()
        if key in KNOWN_TRAITS and key not in known:
            known[key] = value
    return known


def _text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def normalize_payload(
    payload: dict[str, Any],
    token_id: int | str,
    gateways: tuple[str, ...] = IPFS_GATEWAYS,
) -> NormalizedMetadata:
    """
    Build the canonical record from a decoded metadata object.

    Typed fields come from the known attribute keys (Category, Location,
    Latitude, Longitude). A top-level `location` object
    (`{city, latitude, longitude}`) fills whatever the attributes lack.

    Args:
        payload: Decoded metadata JSON object
        token_id: Token ID (used for the default title)
        gateways: IPFS gateways, preferred first

    Returns:
        NormalizedMetadata
    """
    if not isinstance(payload, dict):
        raise NormalizationError(
            f"Token #{token_id}: metadata is not a JSON object"
        )

    token_id = str(token_id)
    pairs = _attribute_pairs(payload.get("attributes"))
    known = _known_traits(pairs)

    location_obj = payload.get("location")
    if isinstance(location_obj, dict):
        known.setdefault(TRAIT_LOCATION, location_obj.get("city"))
        if parse_coordinate(known.get(TRAIT_LATITUDE), MAX_LATITUDE) is None:
            known[TRAIT_LATITUDE] = location_obj.get("latitude")
        if parse_coordinate(known.get(TRAIT_LONGITUDE), MAX_LONGITUDE) is None:
            known[TRAIT_LONGITUDE] = location_obj.get("longitude")

    image = _text(payload.get("image"))

    return NormalizedMetadata(
        token_id=token_id,
        title=_text(payload.get("name"))
        or DEFAULT_TITLE_TEMPLATE.format(token_id=token_id),
        description=_text(payload.get("description")) or "",
        image_url=gateway_url(image, gateways) if image else "",
        category=_text(known.get(TRAIT_CATEGORY)) or DEFAULT_CATEGORY,
        location=_text(known.get(TRAIT_LOCATION)) or DEFAULT_LOCATION,
        latitude=parse_coordinate(known.get(TRAIT_LATITUDE), MAX_LATITUDE),
        longitude=parse_coordinate(known.get(TRAIT_LONGITUDE), MAX_LONGITUDE),
        attributes=pairs,
        raw=payload,
    )


def normalize_token_uri(
    raw: str | None,
    token_id: int | str,
    gateways: tuple[str, ...] = IPFS_GATEWAYS,
) -> NormalizedMetadata:
    """
    Normalize an inline tokenURI.

    IPFS references need a fetch first; see MetadataResolver.

    Args:
        raw: tokenURI value
        token_id: Token ID
        gateways: IPFS gateways, preferred first

    Returns:
        NormalizedMetadata

    Raises:
        NormalizationError: Unparseable value or an IPFS reference
    """
    variant = classify_token_uri(raw)
    if isinstance(variant, InlineJson):
        return normalize_payload(variant.payload, token_id, gateways)
    if isinstance(variant, IpfsReference):
        raise NormalizationError(
            f"Token #{token_id}: tokenURI is an IPFS reference ({variant.cid}), "
            "fetch required"
        )
    raise NormalizationError(f"Token #{token_id}: {variant.reason}")

"""
Metadata Normalizer Types.

Tagged variant for raw tokenURI shapes and the canonical record the
normalizer produces.
"""

import json
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class InlineJson:
    """`data:application/json;base64,...` decoded to a JSON object."""

    payload: dict[str, Any]


@dataclass(frozen=True)
class IpfsReference:
    """IPFS content reference: CID, optionally followed by a path."""

    cid: str


@dataclass(frozen=True)
class Unparseable:
    """tokenURI that cannot be turned into metadata."""

    reason: str


TokenURI = InlineJson | IpfsReference | Unparseable


@dataclass(frozen=True)
class NormalizedMetadata:
    """
    Canonical metadata record for one token.

    Typed columns come from the known attribute keys; the full decoded
    payload is kept in `raw` verbatim.
    """

    token_id: str
    title: str
    description: str
    image_url: str
    category: str
    location: str
    latitude: float | None
    longitude: float | None
    attributes: tuple[tuple[str, Any], ...] = ()
    raw: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "token_id": self.token_id,
            "title": self.title,
            "description": self.description,
            "image_url": self.image_url,
            "category": self.category,
            "location": self.location,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "attributes": [list(pair) for pair in self.attributes],
            "raw": self.raw,
        }

    def canonical_json(self) -> str:
        """Stable serialization: equal records give equal bytes."""
        return json.dumps(
            self.as_dict(),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
            default=str,
        )

    def to_record_values(self) -> dict[str, Any]:
        """
        Column values for an NFT record.

        Returns:
            Dict of NFT columns filled from the metadata
        """
        return {
            "token_id": self.token_id,
            "title": self.title,
            "description": self.description,
            "image_url": self.image_url,
            "category": self.category,
            "location": self.location,
            "latitude": _to_decimal(self.latitude),
            "longitude": _to_decimal(self.longitude),
            "token_metadata": self.raw,
        }


def _to_decimal(value: float | None) -> Decimal | None:
    if value is None:
        return None
    return Decimal(repr(value)).quantize(Decimal("0.00000001"))

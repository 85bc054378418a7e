"""
Address and hash normalization.

Every address and hash is stored lowercase with a 0x prefix.
"""

from eth_utils import is_address


def normalize_address(address: str) -> str:
    """
    Normalize an address to lowercase hex.

    Args:
        address: Hex address, any case

    Returns:
        Lowercased 0x-prefixed address

    Raises:
        ValueError: If address is not a valid 20-byte hex address
    """
    if not address or not is_address(address):
        raise ValueError(f"Invalid address: {address!r}")
    return address.lower()


def normalize_tx_hash(tx_hash: str | bytes | None) -> str | None:
    """
    Normalize a transaction hash to lowercase 0x-prefixed hex.

    Args:
        tx_hash: Hash as hex string or raw bytes

    Returns:
        Normalized hash or None
    """
    if tx_hash is None:
        return None
    if isinstance(tx_hash, (bytes, bytearray)):
        tx_hash = bytes(tx_hash).hex()
    normalized = tx_hash.lower()
    if not normalized.startswith("0x"):
        normalized = f"0x{normalized}"
    return normalized

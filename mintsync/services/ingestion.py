"""
Token ingestion helpers.

`TokenFetcher` is the ledger phase shared by every ingestion path
(tokenURI with transient retry, then normalization). `NFTWriter` is the
write phase: upsert-or-ignore of the canonical record.
"""

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mintsync.config.constants import LEDGER_MAX_RETRIES
from mintsync.repositories.nft_repository import NFTRepository
from mintsync.services.ledger import LedgerReader, rpc_call_with_retry
from mintsync.services.metadata_normalizer import (
    MetadataResolver,
    NormalizedMetadata,
)
from mintsync.utils.exceptions import (
    InvariantViolationError,
    LedgerError,
    NormalizationError,
)
from mintsync.utils.security import mask_address, mask_tx_hash

# Failures that send a token to the pending-mint queue
FETCH_ERRORS = (LedgerError, NormalizationError)


def describe_error(error: BaseException) -> str:
    """Short `Type: message` form stored in `last_error`."""
    return f"{type(error).__name__}: {error}"


class TokenFetcher:
    """Fetch and normalize one token's metadata. Performs no store I/O."""

    def __init__(
        self,
        reader: LedgerReader,
        resolver: MetadataResolver,
        contract_address: str,
    ) -> None:
        """Initialize fetcher."""
        self.reader = reader
        self.resolver = resolver
        self.contract_address = contract_address.lower()

    async def fetch(
        self, token_id: int | str, max_retries: int = LEDGER_MAX_RETRIES
    ) -> NormalizedMetadata:
        """
        tokenURI(token_id), then normalize.

        Args:
            token_id: Token ID
            max_retries: Attempts for transient ledger failures

        Returns:
            NormalizedMetadata

        Raises:
            TokenURIRevertedError: tokenURI reverted or was empty
            LedgerTransientError: Ledger unavailable after retries
            NormalizationError: Payload could not be normalized
        """
        raw = await rpc_call_with_retry(
            lambda: self.reader.token_uri(self.contract_address, token_id),
            max_retries=max_retries,
            operation_name=f"tokenURI(#{token_id})",
        )
        return await self.resolver.resolve(raw, token_id)


class NFTWriter:
    """Write canonical NFT records. Never commits."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize writer."""
        self.session = session
        self.nft_repo = NFTRepository(session)

    async def store(
        self,
        contract_address: str,
        metadata: NormalizedMetadata,
        owner_address: str,
        creator_address: str,
        transaction_hash: str | None,
    ) -> bool:
        """
        Insert the record for a token unless it already exists.

        Args:
            contract_address: Lowercased contract address
            metadata: Normalized metadata
            owner_address: Current owner
            creator_address: Mint recipient
            transaction_hash: Mint transaction hash, if known

        Returns:
            True if inserted, False if the token was already stored

        Raises:
            InvariantViolationError: The insert was ignored but the token
                is not stored, i.e. the mint transaction hash is already
                recorded for a different token
        """
        inserted = await self.nft_repo.insert_ignore(
            contract_address=contract_address,
            owner_address=owner_address,
            creator_address=creator_address,
            transaction_hash=transaction_hash,
            **metadata.to_record_values(),
        )
        if inserted:
            return True

        existing = await self.nft_repo.get_by_token(contract_address, metadata.token_id)
        if existing is None:
            logger.critical(
                f"[Ingest] Token #{metadata.token_id} of {mask_address(contract_address)} "
                f"not stored: transaction {mask_tx_hash(transaction_hash)} "
                f"is already recorded for another token"
            )
            raise InvariantViolationError(
                f"transaction_hash {transaction_hash} already used by another token"
            )
        return False

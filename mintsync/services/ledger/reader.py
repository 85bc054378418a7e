"""
Ledger Reader.

Async, read-only access to the NFT and quest contracts. Synchronous Web3
calls run in a thread pool under a bounded timeout and a concurrency
limit, with failover between the configured RPC providers.
"""

import asyncio
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any

from loguru import logger
from web3 import Web3
from web3.exceptions import BadFunctionCallOutput, ContractLogicError

from mintsync.config.constants import (
    LEDGER_EXECUTOR_WORKERS,
    LEDGER_TIMEOUT,
    ZERO_ADDRESS,
)
from mintsync.utils.exceptions import (
    LedgerTimeoutError,
    LedgerUnavailableError,
    TokenNotFoundError,
    TokenURIRevertedError,
)
from mintsync.utils.validation import normalize_tx_hash

from .constants import NFT_ABI, QUEST_ABI, QUEST_COMPLETED_TOPIC, TRANSFER_TOPIC
from .events import QuestCompletedEvent, TransferEvent
from .rpc_wrapper import with_timeout

# Reverts are a definitive answer from the contract, not a provider fault
DEFINITIVE_ERRORS = (ContractLogicError, BadFunctionCallOutput)


class LedgerReader:
    """
    Read-only ledger client.

    Handles:
    - Thread pool execution of sync Web3 calls
    - Failover between providers in configuration order
    - Concurrency limiting
    - Timeout handling

    The reader is stateless apart from a block timestamp cache; callers
    decide whether and how to retry.
    """

    def __init__(
        self,
        rpc_urls: list[str],
        timeout: float = LEDGER_TIMEOUT,
        max_concurrent: int = LEDGER_EXECUTOR_WORKERS,
    ) -> None:
        """
        Initialize ledger reader.

        Args:
            rpc_urls: RPC endpoints, primary first
            timeout: Bounded timeout per call in seconds
            max_concurrent: Maximum concurrent calls (and thread pool size)
        """
        if not rpc_urls:
            raise ValueError("At least one RPC URL is required")

        self.timeout = timeout
        self.providers: list[tuple[str, Web3]] = [
            (url, Web3(Web3.HTTPProvider(url, request_kwargs={"timeout": timeout})))
            for url in rpc_urls
        ]
        self._limiter = asyncio.Semaphore(max_concurrent)
        self._executor = ThreadPoolExecutor(
            max_workers=max_concurrent, thread_name_prefix="web3"
        )
        self._block_timestamps: dict[int, int] = {}

    async def _run(
        self, sync_func: Callable[[Web3], Any], operation_name: str
    ) -> Any:
        """
        Run a synchronous Web3 function with failover.

        Args:
            sync_func: Function taking a Web3 instance
            operation_name: Operation name for logging

        Returns:
            Result from the function

        Raises:
            ContractLogicError / BadFunctionCallOutput: Contract reverted
            LedgerUnavailableError: Every provider failed or timed out
        """
        loop = asyncio.get_running_loop()
        last_error: Exception | None = None

        for name, w3 in self.providers:
            try:
                async with self._limiter:
                    return await with_timeout(
                        loop.run_in_executor(self._executor, partial(sync_func, w3)),
                        timeout=self.timeout,
                        operation_name=operation_name,
                    )
            except DEFINITIVE_ERRORS:
                raise
            except LedgerTimeoutError as e:
                last_error = e
            except Exception as e:
                last_error = e
                logger.warning(
                    f"[Ledger] {operation_name} failed on provider '{name}': {e}"
                )

        raise LedgerUnavailableError(
            f"{operation_name} failed on all {len(self.providers)} providers: {last_error}"
        ) from last_error

    @staticmethod
    def _contract(w3: Web3, address: str, abi: list) -> Any:
        return w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    async def owner_of(self, contract_address: str, token_id: int | str) -> str:
        """
        Current owner of a token.

        Args:
            contract_address: NFT contract
            token_id: Token ID

        Returns:
            Lowercased owner address

        Raises:
            TokenNotFoundError: ownerOf reverted (token does not exist)
            LedgerUnavailableError: Transient failure
        """
        def call(w3: Web3) -> str:
            contract = self._contract(w3, contract_address, NFT_ABI)
            return contract.functions.ownerOf(int(token_id)).call()

        try:
            owner = await self._run(call, f"ownerOf(#{token_id})")
        except DEFINITIVE_ERRORS as e:
            raise TokenNotFoundError(token_id, str(e)) from e

        if not owner or owner.lower() == ZERO_ADDRESS:
            raise TokenNotFoundError(token_id, "zero owner")
        return owner.lower()

    async def token_uri(self, contract_address: str, token_id: int | str) -> str:
        """
        Raw tokenURI value.

        Args:
            contract_address: NFT contract
            token_id: Token ID

        Returns:
            Non-empty tokenURI string

        Raises:
            TokenURIRevertedError: Call reverted or returned an empty value
            LedgerUnavailableError: Transient failure
        """
        def call(w3: Web3) -> str:
            contract = self._contract(w3, contract_address, NFT_ABI)
            return contract.functions.tokenURI(int(token_id)).call()

        try:
            uri = await self._run(call, f"tokenURI(#{token_id})")
        except DEFINITIVE_ERRORS as e:
            raise TokenURIRevertedError(token_id, str(e)) from e

        if not uri or not uri.strip():
            raise TokenURIRevertedError(token_id, "empty tokenURI")
        return uri

    async def total_supply(self, contract_address: str) -> int | None:
        """
        totalSupply(), when the contract implements it.

        Returns:
            Total supply or None if the call reverts
        """
        def call(w3: Web3) -> int:
            contract = self._contract(w3, contract_address, NFT_ABI)
            return contract.functions.totalSupply().call()

        try:
            return int(await self._run(call, "totalSupply()"))
        except DEFINITIVE_ERRORS:
            logger.info("[Ledger] totalSupply() not supported by contract")
            return None

    async def block_number(self) -> int:
        """Current chain head."""
        return int(await self._run(lambda w3: w3.eth.block_number, "eth_blockNumber"))

    async def block_timestamp(self, block_number: int) -> int:
        """
        Timestamp (unix seconds) of a block. Cached per block.

        Args:
            block_number: Block number

        Returns:
            Block timestamp
        """
        cached = self._block_timestamps.get(block_number)
        if cached is not None:
            return cached

        block = await self._run(
            lambda w3: w3.eth.get_block(block_number), f"getBlock({block_number})"
        )
        timestamp = int(block["timestamp"])
        self._block_timestamps[block_number] = timestamp
        return timestamp

    async def _get_logs(
        self, address: str, topic: str, from_block: int, to_block: int
    ) -> list[Any]:
        params = {
            "address": Web3.to_checksum_address(address),
            "topics": [topic],
            "fromBlock": from_block,
            "toBlock": to_block,
        }
        return await self._run(
            lambda w3: w3.eth.get_logs(params),
            f"getLogs({from_block}-{to_block})",
        )

    async def get_transfer_events(
        self, contract_address: str, from_block: int, to_block: int
    ) -> list[TransferEvent]:
        """
        Transfer events in a block range, in log order.

        Args:
            contract_address: NFT contract
            from_block: First block (inclusive)
            to_block: Last block (inclusive)

        Returns:
            Decoded transfer events
        """
        raw_logs = await self._get_logs(
            contract_address, TRANSFER_TOPIC, from_block, to_block
        )
        decoder = self._contract(
            self.providers[0][1], contract_address, NFT_ABI
        ).events.Transfer()

        events = []
        for raw in raw_logs:
            decoded = decoder.process_log(raw)
            args = decoded["args"]
            events.append(
                TransferEvent(
                    token_id=str(args["tokenId"]),
                    from_address=args["from"].lower(),
                    to_address=args["to"].lower(),
                    tx_hash=normalize_tx_hash(decoded["transactionHash"]),
                    block_number=int(decoded["blockNumber"]),
                    log_index=int(decoded["logIndex"]),
                )
            )
        events.sort(key=lambda e: (e.block_number, e.log_index))
        return events

    async def get_quest_events(
        self, contract_address: str, from_block: int, to_block: int
    ) -> list[QuestCompletedEvent]:
        """
        QuestCompleted events in a block range, in log order.

        Each event carries the timestamp of the block it was mined in.

        Args:
            contract_address: Quest manager contract
            from_block: First block (inclusive)
            to_block: Last block (inclusive)

        Returns:
            Decoded quest events
        """
        raw_logs = await self._get_logs(
            contract_address, QUEST_COMPLETED_TOPIC, from_block, to_block
        )
        decoder = self._contract(
            self.providers[0][1], contract_address, QUEST_ABI
        ).events.QuestCompleted()

        events = []
        for raw in raw_logs:
            decoded = decoder.process_log(raw)
            args = decoded["args"]
            block_number = int(decoded["blockNumber"])
            events.append(
                QuestCompletedEvent(
                    wallet=args["user"].lower(),
                    quest_id=int(args["questId"]),
                    fee=int(args["fee"]),
                    block_timestamp=await self.block_timestamp(block_number),
                    tx_hash=normalize_tx_hash(decoded["transactionHash"]),
                    block_number=block_number,
                    log_index=int(decoded["logIndex"]),
                    day=int(args["day"]),
                )
            )
        events.sort(key=lambda e: (e.block_number, e.log_index))
        return events

    def cleanup(self) -> None:
        """Clean up thread pool executor."""
        self._executor.shutdown(wait=False)


def create_ledger_reader() -> LedgerReader:
    """Build a reader from application settings."""
    from mintsync.config.settings import settings

    return LedgerReader(
        rpc_urls=settings.get_rpc_urls(),
        timeout=settings.rpc_timeout,
        max_concurrent=settings.rpc_max_concurrent,
    )

"""Executes sequencer blocks on the execution layer and finalizes them."""

from __future__ import annotations

import abc
import asyncio
import logging
import re
from collections.abc import Callable, Hashable, Sequence
from dataclasses import dataclass, field

from . import alert as _alert
from .base64_string import Base64String
from .timestamp import Timestamp

logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"[0-9]+")
_U64_MAX = (1 << 64) - 1

MessageDecoder = Callable[[bytes], Sequence[bytes]]


@dataclass(frozen=True)
class DoBlockResponse:
    """The execution layer's answer to a DoBlock call."""

    block_hash: bytes


@dataclass(frozen=True)
class InitStateResponse:
    """The execution layer's answer to an InitState call."""

    block_hash: bytes


class ExecutionClient(abc.ABC):
    """The calls the executor makes on the execution service."""

    @abc.abstractmethod
    async def call_do_block(
        self,
        prev_block_hash: bytes,
        transactions: list[bytes],
        timestamp: Timestamp | None,
    ) -> DoBlockResponse:
        """Execute ``transactions`` on top of ``prev_block_hash``."""

    @abc.abstractmethod
    async def call_finalize_block(self, block_hash: bytes) -> None:
        """Mark the execution block ``block_hash`` as final."""

    @abc.abstractmethod
    async def call_init_state(self) -> InitStateResponse:
        """Fetch the hash of the execution chain's current head."""


@dataclass
class SequencerBlock:
    """The parts of a sequencer block the executor needs.

    ``rollup_txs`` maps a rollup namespace to its raw, still-encoded transactions.
    """

    block_hash: Base64String
    height: str
    time: str
    rollup_txs: dict[Hashable, list[bytes]] = field(default_factory=dict)


@dataclass(frozen=True)
class BlockReceivedFromGossipNetwork:
    """A block arrived from the gossip network."""

    block: SequencerBlock


@dataclass(frozen=True)
class BlockReceivedFromDataAvailability:
    """A block arrived from the data availability layer."""

    block: SequencerBlock


@dataclass(frozen=True)
class Shutdown:
    """Stop the executor's event loop."""


ExecutorCommand = BlockReceivedFromGossipNetwork | BlockReceivedFromDataAvailability | Shutdown


def _parse_height(value: str) -> int:
    if not _DIGITS.fullmatch(value) or int(value) > _U64_MAX:
        raise ValueError(f"failed to parse block height: {value!r}")
    return int(value)


class Executor:
    """Runs blocks for one rollup namespace and tracks the execution chain head."""

    def __init__(
        self,
        client: ExecutionClient,
        namespace: Hashable,
        alerts: asyncio.Queue,
        decode_messages: MessageDecoder,
        execution_state: bytes,
        commands: asyncio.Queue,
    ) -> None:
        self.client = client
        self.namespace = namespace
        self.alerts = alerts
        self.decode_messages = decode_messages
        self.execution_state = execution_state
        self.commands = commands
        # Sequencer block hash -> execution block hash, kept until the block is finalized.
        self.sequencer_hash_to_execution_hash: dict[Base64String, bytes] = {}

    async def run(self) -> None:
        """Handle commands until a Shutdown command arrives."""
        logger.info("Starting executor event loop.")
        while True:
            command = await self.commands.get()
            match command:
                case BlockReceivedFromGossipNetwork(block=block):
                    self.alerts.put_nowait(
                        _alert.BlockReceivedFromGossipNetwork(
                            block_height=_parse_height(block.height)
                        )
                    )
                    try:
                        await self.execute_block(block)
                    except Exception:
                        logger.exception("failed to execute block")
                case BlockReceivedFromDataAvailability(block=block):
                    self.alerts.put_nowait(
                        _alert.BlockReceivedFromDataAvailability(
                            block_height=_parse_height(block.height)
                        )
                    )
                    try:
                        await self.handle_block_received_from_data_availability(block)
                    except Exception:
                        logger.exception("failed to finalize block")
                case Shutdown():
                    logger.info("Shutting down executor event loop.")
                    return
                case _:
                    raise TypeError(f"unknown executor command: {command!r}")

    def _rollup_transactions(self, raw_transactions: list[bytes]) -> list[bytes]:
        transactions = []
        for raw in raw_transactions:
            try:
                messages = list(self.decode_messages(raw))
            except ValueError:
                continue
            if len(messages) > 1:
                logger.warning(
                    "ignoring cosmos tx with more than one sequencer message",
                    extra={"msgs": messages},
                )
                continue
            if messages:
                transactions.append(messages[0])
        return transactions

    async def execute_block(self, block: SequencerBlock) -> bytes | None:
        """Execute the block's transactions for this namespace.

        Returns the execution block hash, the cached one if the block was already
        executed, or None if the block holds nothing for this namespace.
        """
        cached = self.sequencer_hash_to_execution_hash.get(block.block_hash)
        if cached is not None:
            logger.debug(
                "block already executed",
                extra={"height": block.height, "execution_hash": cached.hex()},
            )
            return cached

        raw_transactions = block.rollup_txs.get(self.namespace)
        if raw_transactions is None:
            logger.info(
                "sequencer block did not contain txs for namespace",
                extra={"height": block.height},
            )
            return None

        prev_block_hash = self.execution_state
        logger.info(
            "executing block with given parent block",
            extra={"height": block.height, "parent_block_hash": prev_block_hash.hex()},
        )
        transactions = self._rollup_transactions(raw_transactions)
        try:
            timestamp = Timestamp.parse_rfc3339(block.time)
        except ValueError as exc:
            raise ValueError(f"failed parsing str as protobuf timestamp: {exc}") from exc

        response = await self.client.call_do_block(prev_block_hash, transactions, timestamp)
        self.execution_state = response.block_hash
        logger.info(
            "executed sequencer block",
            extra={
                "sequencer_block_hash": str(block.block_hash),
                "sequencer_block_height": block.height,
                "execution_block_hash": response.block_hash.hex(),
            },
        )
        self.sequencer_hash_to_execution_hash[block.block_hash] = response.block_hash
        return response.block_hash

    async def handle_block_received_from_data_availability(self, block: SequencerBlock) -> None:
        """Finalize the block, executing it first if that has not happened yet."""
        sequencer_block_hash = block.block_hash
        execution_block_hash = self.sequencer_hash_to_execution_hash.get(sequencer_block_hash)
        if execution_block_hash is None:
            try:
                execution_block_hash = await self.execute_block(block)
            except Exception as exc:
                raise RuntimeError(f"failed to execute block: {exc}") from exc
            if execution_block_hash is None:
                logger.debug("execute_block returned None; skipping finalize_block")
                return
        await self.finalize_block(execution_block_hash, sequencer_block_hash)

    async def finalize_block(
        self, execution_block_hash: bytes, sequencer_block_hash: Base64String
    ) -> None:
        """Finalize the execution block and forget its sequencer hash mapping."""
        try:
            await self.client.call_finalize_block(execution_block_hash)
        except Exception as exc:
            raise RuntimeError(f"failed to finalize block: {exc}") from exc
        self.sequencer_hash_to_execution_hash.pop(sequencer_block_hash, None)


async def create_executor(
    client: ExecutionClient,
    namespace: Hashable,
    alerts: asyncio.Queue,
    decode_messages: MessageDecoder,
) -> tuple[Executor, asyncio.Queue]:
    """Initialise an executor from the execution layer's current state.

    Returns the executor and the queue on which it takes commands.
    """
    response = await client.call_init_state()
    commands: asyncio.Queue = asyncio.Queue()
    executor = Executor(
        client,
        namespace,
        alerts,
        decode_messages,
        response.block_hash,
        commands,
    )
    return executor, commands
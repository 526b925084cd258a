"""Alerts the driver sends to the application that embeds it."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class BlockReceivedFromGossipNetwork:
    """A block has been received from the gossip network."""

    block_height: int


@dataclass(frozen=True)
class BlockReceivedFromDataAvailability:
    """A block has been received from the data availability layer."""

    block_height: int


@dataclass(frozen=True)
class DriverError:
    """An error from somewhere inside the driver."""

    error: BaseException


Alert = BlockReceivedFromGossipNetwork | BlockReceivedFromDataAvailability | DriverError
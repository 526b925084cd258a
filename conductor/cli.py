"""Command-line arguments of the conductor."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any


@dataclass
class CliArgs:
    celestia_node_url: str | None = None
    tendermint_url: str | None = None
    chain_id: str | None = None
    execution_rpc_url: str | None = None
    bootnodes: list[str] = field(default_factory=list)
    disable_finalization: bool = False

    def to_overrides(self) -> dict[str, Any]:
        """Configuration values set by these arguments; unset options are left out."""
        overrides: dict[str, Any] = {
            name: value
            for name, value in (
                ("celestia_node_url", self.celestia_node_url),
                ("tendermint_url", self.tendermint_url),
                ("chain_id", self.chain_id),
                ("execution_rpc_url", self.execution_rpc_url),
            )
            if value is not None
        }
        overrides["bootnodes"] = list(self.bootnodes)
        overrides["disable_finalization"] = self.disable_finalization
        return overrides


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="conductor")
    parser.add_argument("--celestia-node-url", help="URL of the data layer server.")
    parser.add_argument("--tendermint-url", help="URL of the Tendermint node.")
    parser.add_argument(
        "--chain-id",
        help="Chain ID; this should correspond to the secondary chain ID used when "
        "transactions are submitted to the sequencer.",
    )
    parser.add_argument("--execution-rpc-url", help="Address of the execution RPC server.")
    parser.add_argument("--bootnodes", action="append", default=None, help="A bootnode to dial.")
    parser.add_argument("--disable-finalization", action="store_true")
    return parser


def parse_args(argv: Sequence[str] | None = None) -> CliArgs:
    namespace = _build_parser().parse_args(argv)
    return CliArgs(
        celestia_node_url=namespace.celestia_node_url,
        tendermint_url=namespace.tendermint_url,
        chain_id=namespace.chain_id,
        execution_rpc_url=namespace.execution_rpc_url,
        bootnodes=list(namespace.bootnodes or []),
        disable_finalization=namespace.disable_finalization,
    )
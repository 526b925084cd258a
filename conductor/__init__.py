"""Sequencer block verification, execution and finalization for a rollup."""

__version__ = "0.1.0"

__all__ = [
    "alert",
    "base64_string",
    "bech32",
    "block_verifier",
    "cli",
    "config",
    "executor",
    "telemetry",
    "tendermint",
    "timestamp",
    "uint128",
]
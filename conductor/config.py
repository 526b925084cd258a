"""Layered configuration: TOML file, then environment, then command line."""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .cli import CliArgs

DEFAULT_CONFIG_FILE = "ConductorConfig.toml"
ENV_PREFIX = "ASTRIA_"

_STRING_FIELDS = ("celestia_node_url", "tendermint_url", "chain_id", "execution_rpc_url")


@dataclass(kw_only=True)
class Config:
    """The global configuration for the driver and its components."""

    celestia_node_url: str = "http://localhost:26659"
    tendermint_url: str = "http://localhost:1317"
    chain_id: str = "ethereum"
    execution_rpc_url: str = "http://localhost:50051"
    disable_finalization: bool = False
    bootnodes: list[str] = field(default_factory=list)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Config:
        """Build a config from loose values; ``bootnodes`` is required, others default."""
        values: dict[str, Any] = {}
        for name in _STRING_FIELDS:
            if name in data:
                value = data[name]
                if not isinstance(value, str):
                    raise ValueError(f"field `{name}` must be a string, got {value!r}")
                values[name] = value
        if "disable_finalization" in data:
            flag = data["disable_finalization"]
            if not isinstance(flag, bool):
                raise ValueError(f"field `disable_finalization` must be a boolean, got {flag!r}")
            values["disable_finalization"] = flag
        if "bootnodes" not in data:
            raise ValueError("missing field `bootnodes`")
        bootnodes = data["bootnodes"]
        if not isinstance(bootnodes, list) or not all(isinstance(b, str) for b in bootnodes):
            raise ValueError(f"field `bootnodes` must be a list of strings, got {bootnodes!r}")
        values["bootnodes"] = list(bootnodes)
        return cls(**values)


def _parse_env_value(raw: str) -> Any:
    text = raw.strip()
    if text == "true":
        return True
    if text == "false":
        return False
    if text.startswith("[") and text.endswith("]"):
        inner = text[1:-1].strip()
        if not inner:
            return []
        return [item.strip().strip("\"'") for item in inner.split(",")]
    return raw


def _env_values(environ: Mapping[str, str]) -> dict[str, Any]:
    prefix = ENV_PREFIX.lower()
    values: dict[str, Any] = {}
    for key, raw in environ.items():
        if not key.lower().startswith(prefix):
            continue
        name = key[len(prefix):].lower()
        if name:
            values[name] = _parse_env_value(raw)
    return values


def load_config(
    cli_args: CliArgs | None = None,
    toml_path: str | os.PathLike[str] = DEFAULT_CONFIG_FILE,
    environ: Mapping[str, str] | None = None,
) -> Config:
    """Merge the TOML file, ``ASTRIA_`` variables and command-line arguments, later winning.

    A missing TOML file is skipped; an unreadable one raises ValueError.
    """
    merged: dict[str, Any] = {}
    path = Path(toml_path)
    if path.is_file():
        try:
            with path.open("rb") as handle:
                merged.update(tomllib.load(handle))
        except tomllib.TOMLDecodeError as exc:
            raise ValueError(f"failed parsing config file {path}: {exc}") from exc
    merged.update(_env_values(os.environ if environ is None else environ))
    if cli_args is not None:
        merged.update(cli_args.to_overrides())
    return Config.from_mapping(merged)
"""Client and types for the sequencer's validator-set endpoint."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

import requests

from .base64_string import Base64String

VALIDATOR_SET_ENDPOINT = "/cosmos/base/tendermint/v1beta1/validatorsets/"

_REQUEST_TIMEOUT_SECONDS = 5.0
_INTEGER = re.compile(r"[+-]?[0-9]+")
_U64_RANGE = (0, (1 << 64) - 1)
_I64_RANGE = (-(1 << 63), (1 << 63) - 1)


def _require(data: dict[str, Any], name: str) -> Any:
    try:
        return data[name]
    except KeyError:
        raise ValueError(f"missing field `{name}`") from None
    except TypeError as exc:
        raise ValueError(f"expected a mapping holding `{name}`, got {data!r}") from exc


def _require_str(data: dict[str, Any], name: str) -> str:
    value = _require(data, name)
    if not isinstance(value, str):
        raise ValueError(f"field `{name}` must be a string, got {value!r}")
    return value


def _int_from_str(value: Any, name: str, bounds: tuple[int, int]) -> int:
    """Parse an integer that the server sends as a decimal string."""
    if not isinstance(value, str) or not _INTEGER.fullmatch(value):
        raise ValueError(f"field `{name}` must be a string holding an integer, got {value!r}")
    number = int(value)
    low, high = bounds
    if not low <= number <= high:
        raise ValueError(f"field `{name}` is out of range: {number}")
    return number


@dataclass(frozen=True)
class KeyWithType:
    """A public key together with its protobuf type URL."""

    key_type: str
    key: Base64String

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> KeyWithType:
        return cls(
            key_type=_require_str(data, "@type"),
            key=Base64String.from_string(_require(data, "key")),
        )


@dataclass(frozen=True)
class Validator:
    address: str
    pub_key: KeyWithType
    voting_power: int
    proposer_priority: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Validator:
        return cls(
            address=_require_str(data, "address"),
            pub_key=KeyWithType.from_dict(_require(data, "pub_key")),
            voting_power=_int_from_str(_require(data, "voting_power"), "voting_power", _U64_RANGE),
            proposer_priority=_int_from_str(
                _require(data, "proposer_priority"), "proposer_priority", _I64_RANGE
            ),
        )


@dataclass(frozen=True)
class ValidatorSet:
    block_height: str
    validators: list[Validator]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ValidatorSet:
        validators = _require(data, "validators")
        if not isinstance(validators, list):
            raise ValueError(f"field `validators` must be a list, got {validators!r}")
        return cls(
            block_height=_require_str(data, "block_height"),
            validators=[Validator.from_dict(v) for v in validators],
        )

    def get_proposer(self) -> Validator:
        """Return the validator with the highest proposer priority.

        On a tie the last such validator wins. Raises ValueError if the set is empty.
        """
        proposer: Validator | None = None
        for validator in self.validators:
            if proposer is None or validator.proposer_priority >= proposer.proposer_priority:
                proposer = validator
        if proposer is None:
            raise ValueError("no proposer found")
        return proposer


class TendermintClient:
    """Reads validator sets from a sequencer's REST gateway."""

    def __init__(self, endpoint: str, session: requests.Session | None = None) -> None:
        self.endpoint = endpoint
        self.session = session if session is not None else requests.Session()

    def __repr__(self) -> str:
        return f"TendermintClient(endpoint={self.endpoint!r})"

    def get_proposer_address(self, height: int) -> str:
        return self.get_validator_set(height).get_proposer().address

    def get_validator_set(self, height: int) -> ValidatorSet:
        """Fetch the validator set at ``height``; raises RuntimeError on failure."""
        url = f"{self.endpoint}{VALIDATOR_SET_ENDPOINT}{height}"
        try:
            response = self.session.get(url, timeout=_REQUEST_TIMEOUT_SECONDS)
            response.raise_for_status()
            return ValidatorSet.from_dict(response.json())
        except (requests.RequestException, ValueError) as exc:
            raise RuntimeError(f"failed to get validator set at height `{height}`: {exc}") from exc
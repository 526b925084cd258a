"""Checks that sequencer commits are signed, addressed and hashed correctly."""

from __future__ import annotations

import hashlib
import re
import struct
from dataclasses import dataclass, field
from typing import Any

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from . import bech32
from .base64_string import Base64String
from .tendermint import ValidatorSet
from .timestamp import Timestamp

METRO_VALIDATOR_ADDRESS_PREFIX = "metrovalcons"
ADDRESS_LENGTH = 20

BLOCK_ID_FLAG_ABSENT = "BLOCK_ID_FLAG_ABSENT"
BLOCK_ID_FLAG_COMMIT = "BLOCK_ID_FLAG_COMMIT"
BLOCK_ID_FLAG_NIL = "BLOCK_ID_FLAG_NIL"
_BLOCK_ID_FLAG_VALUES = {
    BLOCK_ID_FLAG_ABSENT: 1,
    BLOCK_ID_FLAG_COMMIT: 2,
    BLOCK_ID_FLAG_NIL: 3,
}

_PRECOMMIT = 2
_SIGNATURE_LENGTH = 64
_HASH_LENGTH = 32
_MAX_CHAIN_ID_LENGTH = 50
_U64_MAX = (1 << 64) - 1
_I64_MAX = (1 << 63) - 1
_U32_MAX = (1 << 32) - 1
_ZERO_TIMESTAMP = Timestamp(seconds=-62135596800, nanos=0)
_DIGITS = re.compile(r"[0-9]+")
_CHAIN_ID_CHARS = re.compile(r"[A-Za-z0-9._-]+")


class VerificationError(Exception):
    """A block, commit or signature failed verification."""


@dataclass(frozen=True)
class Parts:
    total: int
    hash: Base64String


@dataclass(frozen=True)
class BlockId:
    hash: Base64String
    part_set_header: Parts


@dataclass(frozen=True)
class CommitSig:
    block_id_flag: str
    validator_address: Base64String
    timestamp: str
    signature: Base64String


def _field(data: Any, name: str) -> Any:
    try:
        return data[name]
    except KeyError:
        raise ValueError(f"missing field `{name}`") from None
    except TypeError as exc:
        raise ValueError(f"expected a mapping holding `{name}`, got {data!r}") from exc


def _str_field(data: Any, name: str) -> str:
    value = _field(data, name)
    if not isinstance(value, str):
        raise ValueError(f"field `{name}` must be a string, got {value!r}")
    return value


def _int_field(data: Any, name: str) -> int:
    value = _field(data, name)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"field `{name}` must be an integer, got {value!r}")
    return value


def _b64_field(data: Any, name: str) -> Base64String:
    value = _field(data, name)
    if value is None:
        return Base64String(b"")
    if not isinstance(value, str):
        raise ValueError(f"field `{name}` must be a base64 string, got {value!r}")
    return Base64String.from_string(value)


def _commit_sig_from_dict(data: Any) -> CommitSig:
    return CommitSig(
        block_id_flag=_str_field(data, "block_id_flag"),
        validator_address=_b64_field(data, "validator_address"),
        timestamp=_str_field(data, "timestamp"),
        signature=_b64_field(data, "signature"),
    )


@dataclass(frozen=True)
class Commit:
    height: str
    round: int
    block_id: BlockId
    signatures: list[CommitSig] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Commit:
        """Read a commit in the sequencer's JSON shape; raises ValueError if malformed."""
        block_id = _field(data, "block_id")
        part_set_header = _field(block_id, "part_set_header")
        signatures = _field(data, "signatures")
        if not isinstance(signatures, list):
            raise ValueError(f"field `signatures` must be a list, got {signatures!r}")
        return cls(
            height=_str_field(data, "height"),
            round=_int_field(data, "round"),
            block_id=BlockId(
                hash=_b64_field(block_id, "hash"),
                part_set_header=Parts(
                    total=_int_field(part_set_header, "total"),
                    hash=_b64_field(part_set_header, "hash"),
                ),
            ),
            signatures=[_commit_sig_from_dict(s) for s in signatures],
        )


# Protobuf wire encoding, following the proto3 rule that default scalars are omitted.

def _varint(value: int) -> bytes:
    if value < 0:
        value += 1 << 64
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _key(number: int, wire_type: int) -> bytes:
    return _varint(number << 3 | wire_type)


def _varint_field(number: int, value: int) -> bytes:
    return _key(number, 0) + _varint(value) if value else b""


def _sfixed64_field(number: int, value: int) -> bytes:
    return _key(number, 1) + struct.pack("<q", value) if value else b""


def _bytes_field(number: int, value: bytes) -> bytes:
    return _key(number, 2) + _varint(len(value)) + value if value else b""


def _message_field(number: int, payload: bytes) -> bytes:
    return _key(number, 2) + _varint(len(payload)) + payload


def _timestamp_message(timestamp: Timestamp) -> bytes:
    return _varint_field(1, timestamp.seconds) + _varint_field(2, timestamp.nanos)


def _encode_commit_sig(vote: CommitSig) -> bytes | None:
    flag = _BLOCK_ID_FLAG_VALUES.get(vote.block_id_flag)
    if flag is None:
        return None
    if flag == _BLOCK_ID_FLAG_VALUES[BLOCK_ID_FLAG_ABSENT]:
        return _varint_field(1, flag) + _message_field(3, _timestamp_message(_ZERO_TIMESTAMP))
    signature = bytes(vote.signature)
    address = bytes(vote.validator_address)
    if len(signature) != _SIGNATURE_LENGTH or len(address) != ADDRESS_LENGTH:
        return None
    try:
        timestamp = Timestamp.parse_rfc3339(vote.timestamp)
    except ValueError:
        return None
    return (
        _varint_field(1, flag)
        + _bytes_field(2, address)
        + _message_field(3, _timestamp_message(timestamp))
        + _bytes_field(4, signature)
    )


def _leaf_hash(leaf: bytes) -> bytes:
    return hashlib.sha256(b"\x00" + leaf).digest()


def _inner_hash(left: bytes, right: bytes) -> bytes:
    return hashlib.sha256(b"\x01" + left + right).digest()


def _merkle_root(items: list[bytes]) -> bytes:
    if not items:
        return hashlib.sha256(b"").digest()
    if len(items) == 1:
        return _leaf_hash(items[0])
    split = 1 << ((len(items) - 1).bit_length() - 1)
    return _inner_hash(_merkle_root(items[:split]), _merkle_root(items[split:]))


def calculate_last_commit_hash(commit: Commit) -> bytes:
    """Merkle root of the protobuf-encoded commit signatures.

    Signatures with an unknown flag or malformed contents are left out.
    """
    encoded = (_encode_commit_sig(vote) for vote in commit.signatures)
    return _merkle_root([item for item in encoded if item is not None])


def public_key_to_bech32_address(key: bytes) -> str:
    """The validator consensus address of an ed25519 public key."""
    digest = hashlib.sha256(bytes(key)).digest()
    try:
        return bech32.encode(METRO_VALIDATOR_ADDRESS_PREFIX, digest[:ADDRESS_LENGTH])
    except ValueError as exc:
        raise VerificationError(f"failed converting hashed key to bech32 address: {exc}") from exc


def does_commit_voting_power_have_quorum(committed: int, total: int) -> bool:
    """Whether ``committed`` is strictly more than two thirds of ``total``."""
    if total < 3:
        return committed * 3 > total * 2
    return committed > total // 3 * 2


def _parse_height(value: str) -> int:
    if not _DIGITS.fullmatch(value) or int(value) > _I64_MAX:
        raise VerificationError(f"failed to parse commit height: {value!r}")
    return int(value)


def _hash_bytes(value: Base64String, what: str) -> bytes:
    raw = bytes(value)
    if raw and len(raw) != _HASH_LENGTH:
        raise VerificationError(f"failed to create hash from {what}: invalid length {len(raw)}")
    return raw


def _check_chain_id(chain_id: str) -> str:
    if not 1 <= len(chain_id) <= _MAX_CHAIN_ID_LENGTH or not _CHAIN_ID_CHARS.fullmatch(chain_id):
        raise VerificationError(f"failed to parse commit chain ID: {chain_id!r}")
    return chain_id


def _canonical_vote_bytes(vote: CommitSig, commit: Commit, chain_id: str) -> bytes:
    height = _parse_height(commit.height)
    round_number = commit.round & 0xFFFF
    block_hash = _hash_bytes(commit.block_id.hash, "commit hash")
    header = commit.block_id.part_set_header
    header_hash = _hash_bytes(header.hash, "commit part_set_header hash")
    if not 0 <= header.total <= _U32_MAX:
        raise VerificationError(f"invalid part set header total: {header.total}")
    if header.total == 0 and header_hash:
        raise VerificationError("invalid part set header: zero total with a non-empty hash")
    try:
        timestamp = Timestamp.parse_rfc3339(vote.timestamp)
    except ValueError as exc:
        raise VerificationError(f"failed to parse commit timestamp: {exc}") from exc
    chain_id = _check_chain_id(chain_id)

    payload = _varint_field(1, _PRECOMMIT)
    payload += _sfixed64_field(2, height)
    payload += _sfixed64_field(3, round_number)
    if block_hash:
        part_set_header = _varint_field(1, header.total) + _bytes_field(2, header_hash)
        payload += _message_field(4, _bytes_field(1, block_hash) + _message_field(2, part_set_header))
    payload += _message_field(5, _timestamp_message(timestamp))
    payload += _bytes_field(6, chain_id.encode("utf-8"))
    return _varint(len(payload)) + payload


def verify_vote_signature(
    vote: CommitSig,
    commit: Commit,
    chain_id: str,
    public_key_bytes: bytes,
    signature_bytes: bytes,
) -> None:
    """Check a validator's precommit signature over the canonical vote.

    Raises VerificationError if the key, signature or vote is invalid.
    """
    try:
        public_key = Ed25519PublicKey.from_public_bytes(bytes(public_key_bytes))
    except ValueError as exc:
        raise VerificationError(f"failed to create public key from vote: {exc}") from exc
    signature = bytes(signature_bytes)
    if len(signature) != _SIGNATURE_LENGTH:
        raise VerificationError(
            f"failed to create signature from vote: expected {_SIGNATURE_LENGTH} bytes, "
            f"got {len(signature)}"
        )
    message = _canonical_vote_bytes(vote, commit, chain_id)
    try:
        public_key.verify(signature, message)
    except InvalidSignature as exc:
        raise VerificationError("failed to verify vote signature") from exc


def ensure_commit_has_quorum(commit: Commit, validator_set: ValidatorSet, chain_id: str) -> None:
    """Ensure validators holding more than two thirds of the voting power signed ``commit``.

    Raises VerificationError if the heights differ, a signer is unknown or its
    address does not match its key, a signature is invalid, or quorum is missing.
    """
    if commit.height != validator_set.block_height:
        raise VerificationError(
            f"commit height mismatch: expected {validator_set.block_height}, got {commit.height}"
        )

    total_voting_power = sum(v.voting_power for v in validator_set.validators)
    if total_voting_power > _U64_MAX:
        raise VerificationError("total voting power exceeded u64:MAX")

    validators = {validator.address: validator for validator in validator_set.validators}

    commit_voting_power = 0
    for vote in commit.signatures:
        if vote.block_id_flag != BLOCK_ID_FLAG_COMMIT:
            continue
        try:
            validator_address = bech32.encode(
                METRO_VALIDATOR_ADDRESS_PREFIX, bytes(vote.validator_address)
            )
        except ValueError as exc:
            raise VerificationError(
                f"failed to encode validator address to bech32: {exc}"
            ) from exc
        validator = validators.get(validator_address)
        if validator is None:
            raise VerificationError(f"validator {validator_address} not found in validator set")

        validator_key = bytes(validator.pub_key.key)
        address_from_pubkey = public_key_to_bech32_address(validator_key)
        if address_from_pubkey != validator_address:
            raise VerificationError(
                f"validator address mismatch: expected {validator_address}, "
                f"got {address_from_pubkey}"
            )

        verify_vote_signature(vote, commit, chain_id, validator_key, bytes(vote.signature))
        commit_voting_power += validator.voting_power

    if commit_voting_power > total_voting_power:
        raise VerificationError(
            "commit voting power is greater than total voting power: "
            f"{commit_voting_power} > {total_voting_power}"
        )
    if not does_commit_voting_power_have_quorum(commit_voting_power, total_voting_power):
        raise VerificationError(
            "commit voting power is less than 2/3 of total voting power: "
            f"{commit_voting_power} <= {total_voting_power * 2 // 3}"
        )
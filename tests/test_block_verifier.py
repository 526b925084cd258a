import base64
import hashlib
import json
from dataclasses import replace

import pytest

from conductor.base64_string import Base64String
from conductor.block_verifier import (
    BlockId,
    Commit,
    CommitSig,
    Parts,
    VerificationError,
    calculate_last_commit_hash,
    does_commit_voting_power_have_quorum,
    ensure_commit_has_quorum,
    public_key_to_bech32_address,
    verify_vote_signature,
)
from conductor.tendermint import KeyWithType, Validator, ValidatorSet

U64_MAX = (1 << 64) - 1

VALIDATOR_ADDRESS = "metrovalcons1hdu2nzhcyfnhaj9tfrdlekfnfwx895mk83d322"
VALIDATOR_PUBLIC_KEY = "MdfFS4MH09Og5y+9SVxpJRqUnZkDGfnPjdyx4qM2Vng="

VALIDATOR_SET_JSON = """{
    "block_height": "2082",
    "validators": [
      {
        "address": "metrovalcons1hdu2nzhcyfnhaj9tfrdlekfnfwx895mk83d322",
        "pub_key": {
          "@type": "/cosmos.crypto.ed25519.PubKey",
          "key": "MdfFS4MH09Og5y+9SVxpJRqUnZkDGfnPjdyx4qM2Vng="
        },
        "voting_power": "5000",
        "proposer_priority": "0"
      }
    ],
    "pagination": {
      "next_key": null,
      "total": "1"
    }
}"""

COMMIT_JSON = """{
    "height": "2082",
    "round": 0,
    "block_id": {
        "hash": "5QrZ8fznJw/X1lviA5cyQ2BwLbma8iuvXHqh6BiMJdU=",
        "part_set_header": {
            "total": 1,
            "hash": "DUMkxxMa2M0/aMmNyVGkvLn+3w1HTsGZ/YKyAVu+gdc="
        }
    },
    "signatures": [
        {
            "block_id_flag": "BLOCK_ID_FLAG_COMMIT",
            "validator_address": "u3ipivgiZ37Iq0jb/NkzS4xy03Y=",
            "timestamp": "2023-05-29T13:57:32.797060160Z",
            "signature": "SQdU03IyfHOiTeGrPcbgBnRSpjN7cimaX0XO3jWLIkKL5w8ePx7Lg7V1CaDDTQJ0G5WHtcHVQky2dzq4vmkHBA=="
        }
    ]
}"""

EXPECTED_LAST_COMMIT_HASH = "rpjY+9Y2ZL9y8RsfcgiKSNw4emL6YyBneMbuztCS9HQ="


@pytest.fixture
def validator_set():
    return ValidatorSet.from_dict(json.loads(VALIDATOR_SET_JSON))


@pytest.fixture
def commit():
    return Commit.from_dict(json.loads(COMMIT_JSON))


def _validator(voting_power, address=VALIDATOR_ADDRESS):
    return Validator(
        address=address,
        pub_key=KeyWithType(
            key_type="/cosmos.crypto.ed25519.PubKey",
            key=Base64String.from_string(VALIDATOR_PUBLIC_KEY),
        ),
        voting_power=voting_power,
        proposer_priority=0,
    )


def _empty_commit():
    return Commit(
        height="2082",
        round=0,
        block_id=BlockId(
            hash=Base64String.from_string("5QrZ8fznJw/X1lviA5cyQ2BwLbma8iuvXHqh6BiMJdU="),
            part_set_header=Parts(
                total=1,
                hash=Base64String.from_string("DUMkxxMa2M0/aMmNyVGkvLn+3w1HTsGZ/YKyAVu+gdc="),
            ),
        ),
        signatures=[],
    )


@pytest.mark.parametrize(
    ("committed", "total"),
    [
        (3, 4),
        (101, 150),
        (U64_MAX // 3, U64_MAX // 3),
        (U64_MAX // 3, U64_MAX // 2 - 1),
        (U64_MAX, U64_MAX),
        (U64_MAX // 3, U64_MAX // 2),
    ],
)
def test_commit_voting_power_has_quorum(committed, total):
    assert does_commit_voting_power_have_quorum(committed, total)


@pytest.mark.parametrize(
    ("committed", "total"),
    [
        (0, 1),
        (1, 2),
        (2, 3),
        (100, 150),
        (U64_MAX // 3 - 1, U64_MAX // 2),
        (0, 0),
    ],
)
def test_commit_voting_power_lacks_quorum(committed, total):
    assert not does_commit_voting_power_have_quorum(committed, total)


def test_commit_from_dict_reads_fields(commit):
    assert commit.height == "2082"
    assert commit.round == 0
    assert commit.block_id.part_set_header.total == 1
    assert len(commit.signatures) == 1
    vote = commit.signatures[0]
    assert vote.block_id_flag == "BLOCK_ID_FLAG_COMMIT"
    assert bytes(vote.validator_address) == base64.b64decode("u3ipivgiZ37Iq0jb/NkzS4xy03Y=")


def test_commit_from_dict_rejects_missing_field():
    data = json.loads(COMMIT_JSON)
    del data["block_id"]
    with pytest.raises(ValueError, match="block_id"):
        Commit.from_dict(data)


def test_ensure_commit_has_quorum_ok(commit, validator_set):
    assert ensure_commit_has_quorum(commit, validator_set, "private") is None
    with pytest.raises(VerificationError, match="failed to verify vote signature"):
        ensure_commit_has_quorum(commit, validator_set, "other")


def test_ensure_commit_has_quorum_not_ok():
    validator_set = ValidatorSet(block_height="2082", validators=[_validator(5000)])
    with pytest.raises(VerificationError) as info:
        ensure_commit_has_quorum(_empty_commit(), validator_set, "private")
    assert "commit voting power is less than 2/3 of total voting power" in str(info.value)


def test_ensure_commit_has_quorum_height_mismatch(commit):
    validator_set = ValidatorSet(block_height="2083", validators=[_validator(5000)])
    with pytest.raises(VerificationError, match="commit height mismatch"):
        ensure_commit_has_quorum(commit, validator_set, "private")


def test_ensure_commit_has_quorum_total_overflow(commit):
    validator_set = ValidatorSet(
        block_height="2082",
        validators=[_validator(U64_MAX), _validator(U64_MAX, address="metrovalcons1other")],
    )
    with pytest.raises(VerificationError, match="total voting power exceeded"):
        ensure_commit_has_quorum(commit, validator_set, "private")


def test_ensure_commit_has_quorum_unknown_validator(commit):
    validator_set = ValidatorSet(
        block_height="2082", validators=[_validator(5000, address="metrovalcons1other")]
    )
    with pytest.raises(VerificationError, match="not found in validator set"):
        ensure_commit_has_quorum(commit, validator_set, "private")


def test_ensure_commit_has_quorum_rejects_tampered_signature(commit, validator_set):
    vote = commit.signatures[0]
    tampered = bytearray(bytes(vote.signature))
    tampered[0] ^= 0x01
    bad_commit = replace(commit, signatures=[replace(vote, signature=Base64String(bytes(tampered)))])
    with pytest.raises(VerificationError, match="failed to verify vote signature"):
        ensure_commit_has_quorum(bad_commit, validator_set, "private")


def test_nil_votes_do_not_count(commit, validator_set):
    nil_vote = replace(commit.signatures[0], block_id_flag="BLOCK_ID_FLAG_NIL")
    with pytest.raises(VerificationError, match="less than 2/3"):
        ensure_commit_has_quorum(replace(commit, signatures=[nil_vote]), validator_set, "private")


def test_verify_vote_signature_accepts_valid_vote(commit):
    vote = commit.signatures[0]
    public_key = base64.b64decode(VALIDATOR_PUBLIC_KEY)
    assert verify_vote_signature(vote, commit, "private", public_key, bytes(vote.signature)) is None
    with pytest.raises(VerificationError):
        verify_vote_signature(
            vote, replace(commit, round=1), "private", public_key, bytes(vote.signature)
        )


def test_verify_vote_signature_rejects_short_signature(commit):
    vote = commit.signatures[0]
    public_key = base64.b64decode(VALIDATOR_PUBLIC_KEY)
    with pytest.raises(VerificationError, match="failed to create signature"):
        verify_vote_signature(vote, commit, "private", public_key, b"\x00" * 10)


def test_verify_vote_signature_rejects_bad_public_key(commit):
    vote = commit.signatures[0]
    with pytest.raises(VerificationError, match="failed to create public key"):
        verify_vote_signature(vote, commit, "private", b"\x01\x02", bytes(vote.signature))


def test_verify_vote_signature_rejects_bad_chain_id(commit):
    vote = commit.signatures[0]
    public_key = base64.b64decode(VALIDATOR_PUBLIC_KEY)
    with pytest.raises(VerificationError, match="chain ID"):
        verify_vote_signature(vote, commit, "", public_key, bytes(vote.signature))


def test_calculate_last_commit_hash(commit):
    expected = base64.b64decode(EXPECTED_LAST_COMMIT_HASH)
    assert calculate_last_commit_hash(commit) == expected


def test_calculate_last_commit_hash_of_empty_commit_is_empty_digest():
    assert calculate_last_commit_hash(_empty_commit()) == hashlib.sha256(b"").digest()


def test_calculate_last_commit_hash_skips_unknown_flags(commit):
    unknown = replace(commit.signatures[0], block_id_flag="BLOCK_ID_FLAG_UNKNOWN")
    with_unknown = replace(commit, signatures=[*commit.signatures, unknown])
    assert calculate_last_commit_hash(with_unknown) == calculate_last_commit_hash(commit)


def test_calculate_last_commit_hash_skips_malformed_signature(commit):
    broken = replace(commit.signatures[0], signature=Base64String(b"\x00" * 3))
    assert calculate_last_commit_hash(replace(commit, signatures=[broken])) == (
        calculate_last_commit_hash(_empty_commit())
    )


def test_calculate_last_commit_hash_counts_absent_votes(commit):
    absent = CommitSig(
        block_id_flag="BLOCK_ID_FLAG_ABSENT",
        validator_address=Base64String(b""),
        timestamp="0001-01-01T00:00:00Z",
        signature=Base64String(b""),
    )
    with_absent = replace(commit, signatures=[*commit.signatures, absent])
    result = calculate_last_commit_hash(with_absent)
    assert len(result) == 32
    assert result != calculate_last_commit_hash(commit)


def test_calculate_last_commit_hash_depends_on_order(commit):
    other = replace(commit.signatures[0], block_id_flag="BLOCK_ID_FLAG_NIL")
    forward = replace(commit, signatures=[commit.signatures[0], other])
    backward = replace(commit, signatures=[other, commit.signatures[0]])
    assert calculate_last_commit_hash(forward) != calculate_last_commit_hash(backward)


def test_public_key_to_bech32_address():
    public_key = base64.b64decode(VALIDATOR_PUBLIC_KEY)
    assert public_key_to_bech32_address(public_key) == VALIDATOR_ADDRESS
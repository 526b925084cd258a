import pytest
import requests
import responses

from conductor.base64_string import Base64String
from conductor.tendermint import (
    KeyWithType,
    TendermintClient,
    Validator,
    ValidatorSet,
)

ENDPOINT = "http://localhost:1317"
ADDRESS = "metrovalcons1hdu2nzhcyfnhaj9tfrdlekfnfwx895mk83d322"
PUB_KEY = "MdfFS4MH09Og5y+9SVxpJRqUnZkDGfnPjdyx4qM2Vng="

VALIDATOR = {
    "address": ADDRESS,
    "pub_key": {"@type": "/cosmos.crypto.ed25519.PubKey", "key": PUB_KEY},
    "voting_power": "5000",
    "proposer_priority": "0",
}

VALIDATOR_SET = {
    "block_height": "2082",
    "validators": [VALIDATOR],
    "pagination": {"next_key": None, "total": "1"},
}


def _validator(address, priority):
    return Validator(
        address=address,
        pub_key=KeyWithType("/cosmos.crypto.ed25519.PubKey", Base64String.from_string(PUB_KEY)),
        voting_power=1,
        proposer_priority=priority,
    )


def test_validator_deserialize():
    validator = Validator.from_dict(VALIDATOR)
    assert validator.voting_power == 5000
    assert validator.proposer_priority == 0
    assert validator.address == ADDRESS
    assert validator.pub_key.key_type == "/cosmos.crypto.ed25519.PubKey"
    assert str(validator.pub_key.key) == PUB_KEY


def test_validator_rejects_numeric_voting_power():
    data = dict(VALIDATOR, voting_power=5000)
    with pytest.raises(ValueError):
        Validator.from_dict(data)


def test_validator_rejects_negative_voting_power():
    data = dict(VALIDATOR, voting_power="-1")
    with pytest.raises(ValueError):
        Validator.from_dict(data)


def test_validator_accepts_negative_priority():
    validator = Validator.from_dict(dict(VALIDATOR, proposer_priority="-7"))
    assert validator.proposer_priority == -7


def test_validator_missing_field():
    data = {k: v for k, v in VALIDATOR.items() if k != "address"}
    with pytest.raises(ValueError, match="address"):
        Validator.from_dict(data)


def test_validator_set_from_dict():
    validator_set = ValidatorSet.from_dict(VALIDATOR_SET)
    assert validator_set.block_height == "2082"
    assert len(validator_set.validators) == 1
    assert validator_set.get_proposer().address == ADDRESS


def test_get_proposer_picks_highest_priority():
    validator_set = ValidatorSet("1", [_validator("a", 3), _validator("b", 10), _validator("c", -2)])
    assert validator_set.get_proposer().address == "b"


def test_get_proposer_tie_picks_last():
    validator_set = ValidatorSet("1", [_validator("a", 5), _validator("b", 5)])
    assert validator_set.get_proposer().address == "b"


def test_get_proposer_empty_set():
    with pytest.raises(ValueError, match="no proposer found"):
        ValidatorSet("1", []).get_proposer()


def test_should_get_validator_set():
    client = TendermintClient(ENDPOINT)
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{ENDPOINT}/cosmos/base/tendermint/v1beta1/validatorsets/1",
            json=VALIDATOR_SET,
        )
        validator_set = client.get_validator_set(1)
    assert validator_set.block_height == "2082"
    assert validator_set.validators[0].voting_power == 5000


def test_get_proposer_address():
    client = TendermintClient(ENDPOINT, requests.Session())
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{ENDPOINT}/cosmos/base/tendermint/v1beta1/validatorsets/2081",
            json=VALIDATOR_SET,
        )
        assert client.get_proposer_address(2081) == ADDRESS


def test_get_validator_set_error_status():
    client = TendermintClient(ENDPOINT)
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{ENDPOINT}/cosmos/base/tendermint/v1beta1/validatorsets/3",
            status=500,
        )
        with pytest.raises(RuntimeError, match="height `3`"):
            client.get_validator_set(3)


def test_get_validator_set_bad_body():
    client = TendermintClient(ENDPOINT)
    with responses.RequestsMock() as rsps:
        rsps.add(
            responses.GET,
            f"{ENDPOINT}/cosmos/base/tendermint/v1beta1/validatorsets/4",
            body="not json",
        )
        with pytest.raises(RuntimeError):
            client.get_validator_set(4)
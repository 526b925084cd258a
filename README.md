# conductor

`conductor` holds the pieces that sit between a shared sequencer and a
rollup's execution layer: checking that sequencer commits are properly signed
and carry quorum, handing a block's rollup transactions to an execution
service, and finalizing execution blocks once their sequencer block is seen
on the data availability layer.

It needs Python 3.11 or later and depends on `requests` and `cryptography`.
The `test` extra installs what the test suite uses.

## Modules

- `conductor.block_verifier`: `Commit`, `CommitSig`, `BlockId`, `Parts`,
  `ensure_commit_has_quorum`, `verify_vote_signature`,
  `calculate_last_commit_hash`, `public_key_to_bech32_address`,
  `does_commit_voting_power_have_quorum` and `VerificationError`.
- `conductor.executor`: the `Executor`, its `create_executor` factory, the
  abstract `ExecutionClient`, `SequencerBlock`, and the commands
  `BlockReceivedFromGossipNetwork`, `BlockReceivedFromDataAvailability` and
  `Shutdown`.
- `conductor.tendermint`: `TendermintClient`, which reads validator sets over
  HTTP, and the `ValidatorSet`, `Validator` and `KeyWithType` types.
- `conductor.alert`: the alerts an executor puts on its alert queue.
- `conductor.cli` and `conductor.config`: argument parsing and layered
  configuration.
- `conductor.telemetry`: logging set-up.
- `conductor.bech32`, `conductor.base64_string`, `conductor.timestamp`,
  `conductor.uint128`: encodings and small value types.

## Checking a commit

```python
from conductor.block_verifier import Commit, VerificationError, ensure_commit_has_quorum
from conductor.tendermint import ValidatorSet

validator_set = ValidatorSet.from_dict(validator_set_json)
commit = Commit.from_dict(commit_json)

try:
    ensure_commit_has_quorum(commit, validator_set, "private")
except VerificationError as exc:
    print("rejected:", exc)
```

`ensure_commit_has_quorum` raises `VerificationError` when the commit height
differs from the validator set's, a signer is not in the set or its address
does not match its key, an ed25519 vote signature is invalid, or the signed
voting power is not more than two thirds of the total. Only votes flagged
`BLOCK_ID_FLAG_COMMIT` count.

`calculate_last_commit_hash(commit)` returns the merkle root (as bytes) of the
protobuf-encoded commit signatures, and `public_key_to_bech32_address(key)`
gives the `metrovalcons...` address of a public key.

## Fetching validator sets

```python
from conductor.tendermint import TendermintClient

client = TendermintClient("http://localhost:1317")
validator_set = client.get_validator_set(2082)
proposer = validator_set.get_proposer()          # highest proposer priority
address = client.get_proposer_address(2082)
```

Requests time out after five seconds; failures raise `RuntimeError`.

## Executing blocks

Supply an `ExecutionClient` subclass that talks to your execution service,
and a function that turns one raw rollup transaction into its sequencer
message payloads:

```python
import asyncio

from conductor.base64_string import Base64String
from conductor.executor import (
    BlockReceivedFromDataAvailability,
    DoBlockResponse,
    ExecutionClient,
    InitStateResponse,
    SequencerBlock,
    Shutdown,
    create_executor,
)


class MyClient(ExecutionClient):
    async def call_do_block(self, prev_block_hash, transactions, timestamp):
        return DoBlockResponse(block_hash=b"\x01" * 32)

    async def call_finalize_block(self, block_hash):
        pass

    async def call_init_state(self):
        return InitStateResponse(block_hash=b"\x00" * 32)


async def main():
    alerts = asyncio.Queue()
    executor, commands = await create_executor(
        MyClient(), b"my-namespace", alerts, lambda raw: [raw]
    )
    block = SequencerBlock(
        block_hash=Base64String(b"seq-block-1"),
        height="1",
        time="2023-05-29T13:57:32.797060160Z",
        rollup_txs={b"my-namespace": [b"tx"]},
    )
    commands.put_nowait(BlockReceivedFromDataAvailability(block))
    commands.put_nowait(Shutdown())
    await executor.run()
    print(await alerts.get())


asyncio.run(main())
```

A block from the gossip network is executed; a block from the data
availability layer is finalized, and executed first if that has not happened.
Blocks with no transactions for the executor's namespace are skipped. A
decoded transaction that yields more than one message is ignored.

## Configuration

Settings are layered: a TOML file, then `ASTRIA_`-prefixed environment
variables, then command-line arguments, each overriding the one before. A
missing TOML file is skipped.

```python
import os

from conductor.cli import parse_args
from conductor.config import load_config

args = parse_args(["--chain-id", "ethereum", "--bootnodes", "/ip4/127.0.0.1/tcp/4001"])
config = load_config(args, "ConductorConfig.toml", os.environ)
```

`parse_args` accepts `--celestia-node-url`, `--tendermint-url`, `--chain-id`,
`--execution-rpc-url`, `--bootnodes` (repeatable) and
`--disable-finalization`. The defaults are:

| setting                | default                   |
|------------------------|---------------------------|
| `celestia_node_url`    | `http://localhost:26659`  |
| `tendermint_url`       | `http://localhost:1317`   |
| `chain_id`             | `ethereum`                |
| `execution_rpc_url`    | `http://localhost:50051`  |
| `disable_finalization` | `False`                   |

`bootnodes` has no default; `Config.from_mapping` raises `ValueError` without
it (command-line arguments always supply a list, possibly empty).

## Logging

```python
import os
import sys

from conductor import telemetry

telemetry.init(sys.stdout, os.environ)
```

Output is human-readable when the stream is a terminal and one JSON object per
line otherwise. The `CONDUCTOR_LOG` variable takes comma-separated directives
such as `warn,conductor.executor=debug`; the default level is `info`. Calling
`init` a second time raises `RuntimeError`.

## Small types

```python
from conductor import bech32
from conductor.base64_string import Base64String
from conductor.timestamp import Timestamp
from conductor.uint128 import Uint128

assert int(Uint128.from_int(2**127 + 2**63)) == 2**127 + 2**63
hrp, payload = bech32.decode(bech32.encode("metrovalcons", b"\x00" * 20))
key = Base64String.from_string("MdfFS4MH09Og5y+9SVxpJRqUnZkDGfnPjdyx4qM2Vng=")
ts = Timestamp.parse_rfc3339("2023-05-29T13:57:32.797060160Z")   # seconds, nanos
```

## What this package does not do

- It has no client for the data availability node: nothing here submits
  data to it or reads namespaced data back. The `celestia_node_url` setting
  is only carried in the configuration.
- It has no gossip network and no driver loop that feeds blocks from either
  source into the executor; the caller puts commands on the executor's queue.
- It has no RPC client for the execution service; `ExecutionClient` is an
  abstract base to implement.
- It installs no command; `parse_args` only parses arguments.
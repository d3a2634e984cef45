"""Builders for RawEvents and rows used across the test suite."""

from django.conf import settings

from indexer.apps.builders.models import BuildersProject
from indexer.apps.ingest.events import RawEvent

BUILDERS = "0x42BB446eAE6dca7723a9eBdb81EA88aFe77eF4B9"
MOR = "0x7431ADA8A591C955A994A21710752ef9b882b8e3"
ADMIN = "0x00000000000000000000000000000000000000aD"
BASE_TS = 1_700_000_000


def tx_hash(n: int) -> str:
    return "0x" + f"{n:064x}"


def _event(contract_name, contract_address, event_name, args, block, log_index, tx, timestamp, chain_id):
    return RawEvent(
        chain_id=settings.CHAIN_ID if chain_id is None else chain_id,
        contract_name=contract_name,
        contract_address=contract_address,
        event_name=event_name,
        block_number=block,
        block_timestamp=BASE_TS + block * 2 if timestamp is None else timestamp,
        transaction_hash=tx or tx_hash(block * 1000 + log_index),
        log_index=log_index,
        args=args,
    )


def pool_created(
    pool_id="p1",
    block=100,
    log_index=0,
    tx=None,
    timestamp=None,
    chain_id=None,
    name="Pool One",
    admin=ADMIN,
    minimal_deposit=100,
):
    pool = {
        "name": name,
        "admin": admin,
        "poolStart": BASE_TS,
        "withdrawLockPeriodAfterDeposit": 86400,
        "claimLockEnd": BASE_TS + 365 * 86400,
        "minimalDeposit": minimal_deposit,
    }
    return _event(
        "Builders", BUILDERS, "BuilderPoolCreated",
        {"builderPoolId": pool_id, "builderPool": pool},
        block, log_index, tx, timestamp, chain_id,
    )


def deposited(user, amount, pool_id="p1", block=200, log_index=0, tx=None, timestamp=None, chain_id=None):
    return _event(
        "Builders", BUILDERS, "UserDeposited",
        {"builderPool": pool_id, "user": user, "amount": amount},
        block, log_index, tx, timestamp, chain_id,
    )


def withdrawn(user, amount, pool_id="p1", block=300, log_index=0, tx=None, timestamp=None, chain_id=None):
    return _event(
        "Builders", BUILDERS, "UserWithdrawn",
        {"builderPool": pool_id, "user": user, "amount": amount},
        block, log_index, tx, timestamp, chain_id,
    )


def transfer(sender, recipient, value, block=400, log_index=0, tx=None, timestamp=None, chain_id=None):
    return _event(
        "MorToken", MOR, "Transfer",
        {"from": sender, "to": recipient, "value": value},
        block, log_index, tx, timestamp, chain_id,
    )


def unknown_event(block=500, log_index=0):
    return _event("Builders", BUILDERS, "AdminChanged", {}, block, log_index, None, None, None)


def project_fields(pool_id="p1", **overrides):
    fields = dict(
        id=pool_id,
        name="Pool One",
        admin=ADMIN.lower(),
        chain_id=settings.CHAIN_ID,
        contract_address=BUILDERS.lower(),
        created_at=BASE_TS,
        created_at_block=1,
        creation_tx_hash=tx_hash(1),
        creation_log_index=0,
    )
    fields.update(overrides)
    return fields


def make_project(pool_id="p1", **overrides) -> BuildersProject:
    return BuildersProject.objects.create(**project_fields(pool_id, **overrides))

import pytest
from django.db import transaction

from indexer.apps.builders.handlers import (
    POOL_FIELDS,
    BuilderPoolCreatedHandler,
    UserDepositedHandler,
    decode_pool,
)
from indexer.apps.builders.models import BuildersProject, BuildersUser, Counters, StakingEvent
from indexer.apps.ingest.exceptions import DuplicateEventError, DuplicatePoolError, NotFoundError
from indexer.apps.ingest.router import EventState

from .factories import ADMIN, BUILDERS, deposited, pool_created, withdrawn

pytestmark = pytest.mark.django_db


def test_decode_pool_accepts_mapping_and_sequence():
    values = ("Pool", ADMIN, 1, 2, 3, 4)
    as_mapping = dict(zip(POOL_FIELDS, values))

    assert decode_pool(values) == as_mapping
    assert decode_pool(as_mapping) == as_mapping
    with pytest.raises(ValueError):
        decode_pool(values[:5])


def test_pool_created_inserts_project(router):
    event = pool_created("p1", block=100, log_index=3, minimal_deposit=100)

    assert router.process(event) == EventState.COMMITTED

    project = BuildersProject.objects.get(pk="p1")
    assert project.name == "Pool One"
    assert project.admin == ADMIN.lower()
    assert project.minimal_deposit == 100
    assert project.withdraw_lock_period_after_deposit == 86400
    assert (project.total_staked, project.total_users, project.total_claimed) == (0, 0, 0)
    assert project.contract_address == BUILDERS.lower()
    assert project.created_at == event.block_timestamp
    assert (project.created_at_block, project.creation_log_index) == (100, 3)
    assert project.creation_tx_hash == event.transaction_hash

    counters = Counters.objects.get(pk=Counters.GLOBAL_ID)
    assert counters.total_builders_projects == 1
    assert counters.last_updated == event.block_timestamp


def test_pool_created_replay_and_collision(store):
    handler = BuilderPoolCreatedHandler(store=store)
    first = pool_created("p1", block=100)
    handler.record(first)

    with transaction.atomic(), pytest.raises(DuplicateEventError):
        handler.record(first)
    with transaction.atomic(), pytest.raises(DuplicatePoolError):
        handler.record(pool_created("p1", block=150))

    assert BuildersProject.objects.get(pk="p1").created_at_block == 100


def test_deposit_for_unknown_pool_raises(store, resolver):
    handler = UserDepositedHandler(store=store, resolver=resolver)
    event = deposited("0xabc", 10, pool_id="ghost")

    with transaction.atomic(), pytest.raises(NotFoundError):
        handler.record(event)
        handler.apply(event)
    assert resolver.calls == []


def test_deposit_reads_state_at_event_block(router, resolver):
    router.process(pool_created("p1", block=100))
    resolver.set_state("0xAbC", "p1", 500, last_deposit=111, claim_lock_start=222, virtual_deposited=600)
    event = deposited("0xAbC", 500, block=200, log_index=4)

    assert router.process(event) == EventState.COMMITTED

    assert resolver.calls == [("0xAbC", "p1", 200)]
    user = BuildersUser.objects.get(pk="p1-0xabc")
    assert user.address == "0xabc"
    assert user.staked == 500
    assert user.claimed == 0
    assert user.last_stake == event.block_timestamp
    assert user.claim_lock_end == 222
    assert user.last_deposit == 111
    assert user.virtual_deposited == 600

    ledger = StakingEvent.objects.get(pk=event.event_id)
    assert ledger.event_type == StakingEvent.DEPOSIT
    assert ledger.amount == 500
    assert ledger.user_address == "0xabc"
    assert ledger.project_id == "p1"


def test_withdraw_keeps_last_stake(router, resolver):
    router.process(pool_created("p1", block=100))
    resolver.set_state("0xabc", "p1", 500, block=200)
    resolver.set_state("0xabc", "p1", 200, block=300)
    deposit = deposited("0xabc", 500, block=200)
    router.process(deposit)

    assert router.process(withdrawn("0xabc", 300, block=300)) == EventState.COMMITTED

    user = BuildersUser.objects.get(pk="p1-0xabc")
    assert user.staked == 200
    assert user.last_stake == deposit.block_timestamp
    project = BuildersProject.objects.get(pk="p1")
    assert (project.total_staked, project.total_users) == (200, 1)
    assert list(StakingEvent.objects.values_list("event_type", flat=True)) == [
        StakingEvent.DEPOSIT,
        StakingEvent.WITHDRAW,
    ]


def test_full_withdraw_keeps_user_row(router, resolver):
    router.process(pool_created("p1", block=100))
    resolver.set_state("0xabc", "p1", 500, block=200)
    resolver.set_state("0xabc", "p1", 0, block=300)
    router.process(deposited("0xabc", 500, block=200))
    router.process(withdrawn("0xabc", 500, block=300))

    assert BuildersUser.objects.get(pk="p1-0xabc").staked == 0
    project = BuildersProject.objects.get(pk="p1")
    assert (project.total_staked, project.total_users) == (0, 1)


def test_withdraw_for_unseen_user_leaves_last_stake_unset(router, resolver):
    router.process(pool_created("p1", block=100))
    resolver.set_state("0xabc", "p1", 0, block=300)

    assert router.process(withdrawn("0xabc", 300, block=300)) == EventState.COMMITTED

    user = BuildersUser.objects.get(pk="p1-0xabc")
    assert user.last_stake == 0
    assert user.staked == 0

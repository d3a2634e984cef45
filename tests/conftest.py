import pytest
from django.conf import settings

from indexer.apps.chain.services.resolver import UserState
from indexer.apps.ingest.exceptions import StateUnavailableError
from indexer.apps.ingest.router import EventRouter
from indexer.apps.ingest.store import EntityStore


class FakeResolver:
    """
    Stands in for StakingStateResolver. States are keyed by (user, pool) and
    optionally pinned to a block; `failures` makes the next N reads fail.
    """

    def __init__(self):
        self.states = {}
        self.failures = 0
        self.calls = []

    def set_state(self, user, project_id, deposited, block=None, last_deposit=0, claim_lock_start=0, virtual_deposited=None):
        self.states[(user.lower(), project_id, block)] = UserState(
            last_deposit=last_deposit,
            claim_lock_start=claim_lock_start,
            deposited=deposited,
            virtual_deposited=deposited if virtual_deposited is None else virtual_deposited,
        )

    def read_user_state(self, contract_address, chain_id, user, project_id, block_number):
        self.calls.append((user, project_id, block_number))
        if self.failures:
            self.failures -= 1
            raise StateUnavailableError("rpc unavailable")
        key = (user.lower(), project_id)
        state = self.states.get(key + (block_number,)) or self.states.get(key + (None,))
        if state is None:
            raise StateUnavailableError(f"no state for {key}")
        return state


class FakeSource:
    """Serves a fixed list of RawEvents by block range, like ChainSource.fetch."""

    def __init__(self, events=(), head=None, start_block=0):
        self.events = list(events)
        self.head = head
        self.start_block = start_block
        self.calls = []

    def latest_block(self):
        if self.head is not None:
            return self.head
        return max((e.block_number for e in self.events), default=self.start_block)

    def fetch(self, from_block, to_block):
        self.calls.append((from_block, to_block))
        selected = [e for e in self.events if from_block <= e.block_number <= to_block]
        return sorted(selected, key=lambda e: e.position)


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def store():
    return EntityStore()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def router(resolver, sleeps):
    return EventRouter(
        settings.CHAIN_ID, resolver=resolver, attempts=3, backoff=0.5, sleep=sleeps.append
    )

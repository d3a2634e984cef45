from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Dict

from indexer.apps.builders.models import BuildersProject, BuildersUser, StakingEvent
from indexer.apps.builders.services.aggregates import AggregateMaintainer
from indexer.apps.ingest.base import EventHandler
from indexer.apps.ingest.events import RawEvent
from indexer.apps.ingest.exceptions import (
    ConflictError,
    DuplicateEventError,
    DuplicatePoolError,
)
from indexer.apps.ingest.registry import handles
from indexer.apps.ingest.store import UpsertSpec

import logging

logger = logging.getLogger(__name__)

# Order of the BuilderPool struct in the contract ABI.
POOL_FIELDS = (
    "name",
    "admin",
    "poolStart",
    "withdrawLockPeriodAfterDeposit",
    "claimLockEnd",
    "minimalDeposit",
)

# Fields overwritten from the authoritative read when the user row already exists.
# last_stake tracks deposits only.
BUILDERS_USER_UPSERT = UpsertSpec(
    model=BuildersUser,
    fields=("staked", "last_stake", "claim_lock_end", "last_deposit", "virtual_deposited"),
)
BUILDERS_USER_WITHDRAW_UPSERT = UpsertSpec(
    model=BuildersUser,
    fields=("staked", "claim_lock_end", "last_deposit", "virtual_deposited"),
)


def decode_pool(value: Any) -> Dict[str, Any]:
    """Accept the builderPool tuple either as a mapping or in ABI order."""
    if isinstance(value, Mapping):
        return {f: value[f] for f in POOL_FIELDS}
    values = list(value)
    if len(values) != len(POOL_FIELDS):
        raise ValueError(f"builderPool tuple has {len(values)} fields, expected {len(POOL_FIELDS)}")
    return dict(zip(POOL_FIELDS, values))


def _addr(value: str) -> str:
    return value.lower()


@handles("Builders", "BuilderPoolCreated", description="New staking pool")
class BuilderPoolCreatedHandler(EventHandler):
    def record(self, event: RawEvent) -> None:
        pool_id = event.args["builderPoolId"]
        pool = decode_pool(event.args["builderPool"])
        try:
            self.store.insert(
                BuildersProject,
                id=pool_id,
                name=pool["name"],
                admin=_addr(pool["admin"]),
                total_staked=0,
                total_users=0,
                total_claimed=0,
                minimal_deposit=int(pool["minimalDeposit"]),
                withdraw_lock_period_after_deposit=int(pool["withdrawLockPeriodAfterDeposit"]),
                claim_lock_end=int(pool["claimLockEnd"]),
                starts_at=int(pool["poolStart"]),
                chain_id=event.chain_id,
                contract_address=_addr(event.contract_address),
                created_at=event.block_timestamp,
                created_at_block=event.block_number,
                creation_tx_hash=event.transaction_hash,
                creation_log_index=event.log_index,
            )
        except ConflictError:
            existing = self.store.get(BuildersProject, pool_id)
            if (existing.creation_tx_hash, existing.creation_log_index) == (
                event.transaction_hash,
                event.log_index,
            ):
                raise DuplicateEventError(BuildersProject._meta.db_table, event.event_id)
            raise DuplicatePoolError(BuildersProject._meta.db_table, pool_id)

    def apply(self, event: RawEvent) -> None:
        AggregateMaintainer(self.store).refresh_global_counters(event.block_timestamp)


class StakeChangeHandler(EventHandler):
    """Shared deposit/withdraw logic: ledger row, authoritative user row, project totals."""

    event_type: str = ""
    upsert_spec: UpsertSpec = BUILDERS_USER_UPSERT
    # withdrawals leave last_stake alone, including on a first-seen user row
    stamps_last_stake: bool = True

    def record(self, event: RawEvent) -> None:
        try:
            self.store.insert(
                StakingEvent,
                id=event.event_id,
                project_id=event.args["builderPool"],
                user_address=_addr(event.args["user"]),
                event_type=self.event_type,
                amount=int(event.args["amount"]),
                block_number=event.block_number,
                block_timestamp=event.block_timestamp,
                transaction_hash=event.transaction_hash,
                log_index=event.log_index,
                chain_id=event.chain_id,
            )
        except ConflictError:
            raise DuplicateEventError(StakingEvent._meta.db_table, event.event_id)

    def apply(self, event: RawEvent) -> None:
        project_id = event.args["builderPool"]
        user = event.args["user"]
        aggregates = AggregateMaintainer(self.store)

        # lock first; NotFoundError here means the creation event was missed
        self.store.get_for_update(BuildersProject, project_id)

        state = self.resolver.read_user_state(
            contract_address=event.contract_address,
            chain_id=event.chain_id,
            user=user,
            project_id=project_id,
            block_number=event.block_number,
        )
        self.store.upsert(
            BuildersUser,
            {
                "id": BuildersUser.make_id(project_id, user),
                "project_id": project_id,
                "address": _addr(user),
                "staked": state.deposited,
                "claimed": 0,
                "last_stake": event.block_timestamp if self.stamps_last_stake else 0,
                "claim_lock_end": state.claim_lock_start,
                "last_deposit": state.last_deposit,
                "virtual_deposited": state.virtual_deposited,
                "chain_id": event.chain_id,
            },
            self.upsert_spec,
        )
        logger.debug(f"User {user} in pool {project_id}: staked={state.deposited}")
        aggregates.refresh_project_totals(project_id)


@handles("Builders", "UserDeposited", description="Stake added to a pool")
class UserDepositedHandler(StakeChangeHandler):
    event_type = StakingEvent.DEPOSIT


@handles("Builders", "UserWithdrawn", description="Stake removed from a pool")
class UserWithdrawnHandler(StakeChangeHandler):
    event_type = StakingEvent.WITHDRAW
    upsert_spec = BUILDERS_USER_WITHDRAW_UPSERT
    stamps_last_stake = False

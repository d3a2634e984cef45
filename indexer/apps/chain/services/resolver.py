"""
Point-in-time staking state reads.

The read is pinned to the block of the event being processed, so an event is
never materialized with chain state newer than itself.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from django.conf import settings

from indexer.apps.ingest.exceptions import StateUnavailableError
from .builders import BuildersService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserState:
    last_deposit: int
    claim_lock_start: int
    deposited: int
    virtual_deposited: int


class StakingStateResolver:
    """Reads usersData for (user, pool) at a block, one service per staking contract."""

    def __init__(
        self,
        chain_name: Optional[str] = None,
        service_factory: Optional[Callable[[str], BuildersService]] = None,
    ):
        self.chain_name = chain_name or settings.CHAIN_NAME
        self.chain_id = settings.INDEXER_CHAINS[self.chain_name]["chain_id"]
        self.service_factory = service_factory or (
            lambda address: BuildersService(address, chain_name=self.chain_name)
        )
        self._services: Dict[str, BuildersService] = {}

    def _service(self, contract_address: str) -> BuildersService:
        key = contract_address.lower()
        service = self._services.get(key)
        if service is None:
            service = self._services[key] = self.service_factory(contract_address)
        return service

    def read_user_state(
        self,
        contract_address: str,
        chain_id: int,
        user: str,
        project_id: str,
        block_number: int,
    ) -> UserState:
        if chain_id != self.chain_id:
            raise StateUnavailableError(
                f"resolver for chain {self.chain_id} asked to read chain {chain_id}"
            )
        try:
            data = self._service(contract_address).get_user_data(
                user, project_id, block_identifier=block_number
            )
        except Exception as e:
            # never default: a zeroed read would overwrite the user's position
            raise StateUnavailableError(
                f"usersData({user}, {project_id}) at block {block_number} failed: {e}"
            ) from e
        return UserState(*data)

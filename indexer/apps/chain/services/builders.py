"""
Builders staking contract service
Read-only access to pool and per-user staking state
"""

from typing import Optional, Tuple
from django.conf import settings
from hexbytes import HexBytes
import logging

from .base_contract import BaseContractService
from .rpc import RpcPool

logger = logging.getLogger(__name__)


class BuildersService(BaseContractService):
    """Service for reading the Builders staking contract"""

    def __init__(
        self,
        contract_address: Optional[str] = None,
        chain_name: Optional[str] = None,
        pool: Optional[RpcPool] = None,
    ):
        super().__init__(
            contract_address=contract_address or settings.BUILDERS_CONTRACT_ADDRESS,
            abi_path=settings.BUILDERS_ABI_PATH,
            chain_name=chain_name or settings.CHAIN_NAME,
            pool=pool,
        )

    def get_user_data(
        self, user: str, pool_id: str, block_identifier="latest"
    ) -> Tuple[int, int, int, int]:
        """
        Read usersData(user, poolId)

        Args:
            user: Staker address
            pool_id: bytes32 pool id as 0x-hex
            block_identifier: Block height to read at

        Returns:
            (lastDeposit, claimLockStart, deposited, virtualDeposited)
        """
        result = self.call_read_function(
            "usersData",
            self.checksum_address(user),
            HexBytes(pool_id),
            block_identifier=block_identifier,
        )
        last_deposit, claim_lock_start, deposited, virtual_deposited = result[:4]
        return (
            int(last_deposit),
            int(claim_lock_start),
            int(deposited),
            int(virtual_deposited),
        )

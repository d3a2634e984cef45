"""
Base Web3 Contract Service
Provides read access to a deployed contract through a chain's RPC pool
"""

from web3 import Web3
from typing import Any, Dict, List, Optional
import logging
import json

from .rpc import RpcPool, get_pool

logger = logging.getLogger(__name__)


def load_abi(abi_path) -> List[Dict[str, Any]]:
    """Load an ABI from a raw ABI array or a Hardhat artifact with an `abi` field."""
    with open(abi_path, 'r') as f:
        data = json.load(f)
    if isinstance(data, dict):
        return data.get("abi", [])
    return data


class BaseContractService:
    """Base class for Web3 contract reads"""

    def __init__(
        self,
        contract_address: str,
        abi_path: str = None,
        chain_name: Optional[str] = None,
        pool: Optional[RpcPool] = None,
        abi: Optional[List[Dict[str, Any]]] = None,
    ):
        """
        Initialize the contract service

        Args:
            contract_address: The deployed contract address
            abi_path: Path to the contract ABI JSON file
            chain_name: Key into settings.INDEXER_CHAINS (ignored when pool is given)
            pool: Optional RPC pool (defaults to the chain's shared pool)
            abi: Already loaded ABI, instead of abi_path
        """
        self.pool = pool or get_pool(chain_name)
        self.abi = abi if abi is not None else load_abi(abi_path)
        self.contract_address = Web3.to_checksum_address(contract_address)
        self._contracts = {}

        logger.info(f"Initialized contract at {self.contract_address}")

    def contract(self, web3: Web3):
        """Contract bound to one endpoint's Web3 instance"""
        key = id(web3)
        contract = self._contracts.get(key)
        if contract is None:
            contract = self._contracts[key] = web3.eth.contract(
                address=self.contract_address, abi=self.abi
            )
        return contract

    def checksum_address(self, address: str) -> str:
        """Convert address to checksum format"""
        return Web3.to_checksum_address(address)

    def call_read_function(self, function_name: str, *args, block_identifier="latest") -> Any:
        """
        Call a read-only contract function

        Args:
            function_name: Name of the function to call
            *args: Arguments to pass to the function
            block_identifier: Block height to read at (defaults to latest)

        Returns:
            Function result
        """
        try:
            return self.pool.call(
                lambda web3: getattr(self.contract(web3).functions, function_name)(
                    *args
                ).call(block_identifier=block_identifier)
            )
        except Exception as e:
            logger.error(f"Error calling {function_name} at block {block_identifier}: {e}")
            raise

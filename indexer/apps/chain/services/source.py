"""
Chain source: pulls logs for the configured contracts of one chain and
decodes them into RawEvents in (block number, log index) order.
"""

import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Tuple

from django.conf import settings
from eth_utils import event_abi_to_log_topic
from web3 import Web3
from web3._utils.events import get_event_data
from web3.exceptions import Web3Exception

from indexer.apps.ingest.events import RawEvent
from .base_contract import load_abi
from .rpc import RpcPool, get_pool, is_range_too_large

logger = logging.getLogger(__name__)


def _hex(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(value)
    return str(value)


def _normalize_value(value: Any, abi_input: Dict[str, Any]) -> Any:
    """Plain Python values: ints, strings, 0x-hex for bytes, dicts for tuples."""
    abi_type = abi_input.get("type", "")
    if abi_type == "tuple":
        components = abi_input.get("components", [])
        if isinstance(value, Mapping):
            return {c["name"]: _normalize_value(value[c["name"]], c) for c in components}
        return {c["name"]: _normalize_value(v, c) for c, v in zip(components, value)}
    if isinstance(value, (bytes, bytearray)):
        return Web3.to_hex(value)
    if isinstance(value, (list, tuple)):
        item = dict(abi_input, type=abi_type.rsplit("[", 1)[0])
        return [_normalize_value(v, item) for v in value]
    return value


def normalize_args(args: Mapping, event_abi: Dict[str, Any]) -> Dict[str, Any]:
    inputs = {i["name"]: i for i in event_abi.get("inputs", [])}
    return {name: _normalize_value(value, inputs.get(name, {})) for name, value in args.items()}


class ChainSource:
    """
    Ordered, decoded logs for every contract configured on one chain.

    Args:
        chain_name: Key into settings.INDEXER_CHAINS
        pool: Optional RPC pool (defaults to the chain's shared pool)
        contracts: Optional {name: {"address", "abi" | "abi_path", "start_block"}}
    """

    def __init__(
        self,
        chain_name: Optional[str] = None,
        pool: Optional[RpcPool] = None,
        contracts: Optional[Dict[str, Dict[str, Any]]] = None,
    ):
        self.chain_name = chain_name or settings.CHAIN_NAME
        self.chain_id = settings.INDEXER_CHAINS[self.chain_name]["chain_id"]
        self.pool = pool or get_pool(self.chain_name)
        if contracts is None:
            contracts = {
                name: meta
                for name, meta in settings.INDEXER_CONTRACTS.items()
                if meta["chain"] == self.chain_name
            }
        self.contracts: Dict[str, Dict[str, Any]] = {}
        # address -> topic0 -> (contract name, event abi)
        self.topic_to_abi: Dict[str, Dict[str, Tuple[str, Dict[str, Any]]]] = {}
        for name, meta in contracts.items():
            address = Web3.to_checksum_address(meta["address"])
            abi = meta.get("abi") or load_abi(meta["abi_path"])
            self.contracts[name] = {
                "address": address,
                "start_block": int(meta.get("start_block", 0)),
            }
            topic_map = {}
            for item in abi:
                if item.get("type") != "event" or item.get("anonymous"):
                    continue
                topic_map[Web3.to_hex(event_abi_to_log_topic(item))] = (name, item)
            self.topic_to_abi[address.lower()] = topic_map

    @property
    def start_block(self) -> int:
        return min(c["start_block"] for c in self.contracts.values())

    def latest_block(self) -> int:
        return self.pool.call(lambda web3: web3.eth.block_number)

    def _get_logs(self, from_block: int, to_block: int) -> List[Mapping]:
        addresses = [c["address"] for c in self.contracts.values()]
        return self.pool.call(
            lambda web3: web3.eth.get_logs(
                {"fromBlock": from_block, "toBlock": to_block, "address": addresses}
            )
        )

    def _fetch_logs(self, from_block: int, to_block: int) -> List[Mapping]:
        """get_logs over the range, halving it when the node rejects it as too large."""
        logs: List[Mapping] = []
        current = from_block
        span = to_block - from_block + 1
        while current <= to_block:
            batch_to = min(current + span - 1, to_block)
            try:
                logs.extend(self._get_logs(current, batch_to))
            except (ValueError, Web3Exception) as e:
                if span <= 1 or not is_range_too_large(e):
                    raise
                span = max(span // 2, 1)
                logger.warning(
                    f"get_logs too large ({current}-{batch_to}), reducing range to {span} blocks"
                )
                continue
            current = batch_to + 1
        return logs

    def decode(self, log: Mapping, timestamps: Dict[int, int]) -> Optional[RawEvent]:
        address = log["address"].lower()
        topics = log.get("topics") or []
        if not topics:
            return None
        topic0 = _hex(topics[0]).lower()
        block_number = int(log["blockNumber"])
        entry = self.topic_to_abi.get(address, {}).get(topic0)
        if entry is None:
            # ABI addition we do not know yet; the router logs and drops it
            contract_name = next(
                (n for n, c in self.contracts.items() if c["address"].lower() == address),
                address,
            )
            event_name, args = f"topic:{topic0}", {}
        else:
            contract_name, event_abi = entry
            decoded = get_event_data(self.pool.web3.codec, event_abi, log)
            event_name, args = event_abi["name"], normalize_args(decoded["args"], event_abi)
        if block_number < self.contracts.get(contract_name, {}).get("start_block", 0):
            return None
        return RawEvent(
            chain_id=self.chain_id,
            contract_name=contract_name,
            contract_address=log["address"],
            event_name=event_name,
            block_number=block_number,
            block_timestamp=self._block_timestamp(block_number, timestamps),
            transaction_hash=_hex(log["transactionHash"]),
            log_index=int(log["logIndex"]),
            args=args,
        )

    def _block_timestamp(self, block_number: int, timestamps: Dict[int, int]) -> int:
        ts = timestamps.get(block_number)
        if ts is None:
            block = self.pool.call(lambda web3: web3.eth.get_block(block_number))
            ts = timestamps[block_number] = int(block["timestamp"])
        return ts

    def fetch(self, from_block: int, to_block: int) -> List[RawEvent]:
        """Decoded events in [from_block, to_block], sorted by (block, log index)."""
        if from_block > to_block:
            return []
        timestamps: Dict[int, int] = {}
        events = []
        for log in self._fetch_logs(from_block, to_block):
            if log.get("removed"):
                continue
            event = self.decode(log, timestamps)
            if event is not None:
                events.append(event)
        events.sort(key=lambda e: e.position)
        return events

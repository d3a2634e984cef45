"""
Load-balanced, rate-limited JSON-RPC endpoints for one chain.
"""

import itertools
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import requests
from django.conf import settings
from web3 import Web3
from web3.exceptions import ContractLogicError, Web3Exception

logger = logging.getLogger(__name__)

# Errors worth trying on another endpoint. A contract revert is deterministic
# and is re-raised as-is.
TRANSPORT_ERRORS = (
    requests.exceptions.RequestException,
    Web3Exception,
    ConnectionError,
    TimeoutError,
    ValueError,
)


def is_range_too_large(error: Exception) -> bool:
    """The node refused a get_logs range; every endpoint would refuse it too."""
    msg = str(error).lower()
    return "query returned more than" in msg or "too many" in msg or "block range" in msg


class RpcEndpoint:
    """One provider URL with an optional requests-per-second ceiling."""

    def __init__(
        self,
        url: str,
        requests_per_second: Optional[float] = None,
        timeout: int = 30,
        web3: Optional[Web3] = None,
    ):
        self.url = url
        self.web3 = web3 or Web3(Web3.HTTPProvider(url, request_kwargs={"timeout": timeout}))
        self.min_interval = 1.0 / requests_per_second if requests_per_second else 0.0
        self._next_at = 0.0

    def wait_turn(self, clock: Callable[[], float], sleep: Callable[[float], None]) -> None:
        if not self.min_interval:
            return
        now = clock()
        if now < self._next_at:
            sleep(self._next_at - now)
            now = self._next_at
        self._next_at = now + self.min_interval

    def __repr__(self):
        return f"RpcEndpoint({self.url!r})"


class RpcPool:
    """
    Round-robin over endpoints, failing over on transport errors. A get_logs
    range rejection is raised at once for the caller to split the range.

    Args:
        endpoints: Endpoints in preference order
        clock / sleep: Injected for tests
    """

    def __init__(
        self,
        endpoints: List[RpcEndpoint],
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not endpoints:
            raise ValueError("RpcPool needs at least one endpoint")
        self.endpoints = list(endpoints)
        self.clock = clock
        self.sleep = sleep
        self._start = itertools.cycle(range(len(self.endpoints)))

    @classmethod
    def from_settings(cls, chain_name: str) -> "RpcPool":
        chain = settings.INDEXER_CHAINS[chain_name]
        endpoints = [
            RpcEndpoint(rpc["url"], rpc.get("requests_per_second"))
            for rpc in chain["rpc"]
            if rpc.get("url")
        ]
        return cls(endpoints)

    @property
    def web3(self) -> Web3:
        """A Web3 instance for codec/ABI work that does not hit the network."""
        return self.endpoints[0].web3

    def call(self, fn: Callable[[Web3], Any]) -> Any:
        """Run fn(web3) on the next endpoint, trying the others on failure."""
        first = next(self._start)
        order = self.endpoints[first:] + self.endpoints[:first]
        last_error: Optional[Exception] = None
        for endpoint in order:
            endpoint.wait_turn(self.clock, self.sleep)
            try:
                return fn(endpoint.web3)
            except ContractLogicError:
                raise
            except TRANSPORT_ERRORS as e:
                if is_range_too_large(e):
                    raise
                logger.warning(f"RPC call failed on {endpoint.url}: {e}")
                last_error = e
        raise last_error


_pools: Dict[str, RpcPool] = {}


def get_pool(chain_name: str) -> RpcPool:
    pool = _pools.get(chain_name)
    if pool is None:
        pool = _pools[chain_name] = RpcPool.from_settings(chain_name)
    return pool

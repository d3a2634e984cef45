import pytest
import requests
from web3.exceptions import ContractLogicError

from indexer.apps.chain.services.rpc import RpcEndpoint, RpcPool, is_range_too_large


class Clock:
    def __init__(self):
        self.now = 0.0
        self.naps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.naps.append(seconds)
        self.now += seconds


def _endpoints(*names, rps=None):
    return [RpcEndpoint(f"https://{n}.example", requests_per_second=rps, web3=n) for n in names]


def test_pool_needs_an_endpoint():
    with pytest.raises(ValueError):
        RpcPool([])


def test_calls_rotate_over_endpoints():
    pool = RpcPool(_endpoints("a", "b", "c"))

    used = [pool.call(lambda web3: web3) for _ in range(4)]

    assert used == ["a", "b", "c", "a"]


def test_transport_error_fails_over():
    pool = RpcPool(_endpoints("a", "b"))
    tried = []

    def call(web3):
        tried.append(web3)
        if web3 == "a":
            raise requests.exceptions.ConnectionError("down")
        return 42

    assert pool.call(call) == 42
    assert tried == ["a", "b"]


def test_all_endpoints_failing_raises_last_error():
    pool = RpcPool(_endpoints("a", "b"))

    def call(web3):
        raise TimeoutError(f"{web3} timed out")

    with pytest.raises(TimeoutError, match="b timed out"):
        pool.call(call)


def test_contract_revert_is_not_retried():
    pool = RpcPool(_endpoints("a", "b"))
    tried = []

    def call(web3):
        tried.append(web3)
        raise ContractLogicError("execution reverted")

    with pytest.raises(ContractLogicError):
        pool.call(call)
    assert tried == ["a"]


@pytest.mark.parametrize(
    "message, expected",
    [
        ("query returned more than 10000 results", True),
        ("Log response size exceeded. Too many logs", True),
        ("eth_getLogs block range is too wide", True),
        ("execution reverted", False),
    ],
)
def test_range_too_large_detection(message, expected):
    assert is_range_too_large(ValueError(message)) is expected


def test_range_rejection_is_not_failed_over():
    pool = RpcPool(_endpoints("a", "b"))
    tried = []

    def call(web3):
        tried.append(web3)
        raise ValueError({"code": -32005, "message": "query returned more than 10000 results"})

    with pytest.raises(ValueError, match="query returned more than"):
        pool.call(call)
    assert tried == ["a"]


def test_rate_limited_endpoint_spaces_requests():
    clock = Clock()
    pool = RpcPool(_endpoints("a", rps=4), clock=clock, sleep=clock.sleep)

    for _ in range(3):
        pool.call(lambda web3: None)

    assert clock.naps == [0.25, 0.25]


def test_pool_from_settings_skips_empty_urls(settings):
    settings.INDEXER_CHAINS = {
        "testnet": {
            "chain_id": 1,
            "rpc": [
                {"url": "http://127.0.0.1:8545", "requests_per_second": None},
                {"url": "", "requests_per_second": 5},
            ],
        }
    }

    pool = RpcPool.from_settings("testnet")

    assert [e.url for e in pool.endpoints] == ["http://127.0.0.1:8545"]
    assert pool.endpoints[0].min_interval == 0.0

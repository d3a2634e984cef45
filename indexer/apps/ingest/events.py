from dataclasses import dataclass, asdict, field
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class RawEvent:
    """One decoded log as delivered by the chain source."""

    chain_id: int
    contract_name: str
    contract_address: str
    event_name: str
    block_number: int
    block_timestamp: int
    transaction_hash: str
    log_index: int
    args: Dict[str, Any] = field(default_factory=dict)

    @property
    def event_id(self) -> str:
        """Ledger identity shared by every append-only row: '<tx hash>-<log index>'."""
        return f"{self.transaction_hash}-{self.log_index}"

    @property
    def position(self) -> Tuple[int, int]:
        return (self.block_number, self.log_index)

    @property
    def key(self) -> Tuple[str, str]:
        return (self.contract_name, self.event_name)

    def to_payload(self) -> Dict[str, Any]:
        return _jsonable(asdict(self))


def _jsonable(value: Any) -> Any:
    # uint256 values overflow JSON numbers in most consumers; keep them as strings
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value if abs(value) < 2**53 else str(value)
    if isinstance(value, (bytes, bytearray)):
        return "0x" + bytes(value).hex()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value

from typing import Iterable, Optional

from django.conf import settings

from indexer.apps.ingest.base import EventHandler
from indexer.apps.ingest.events import RawEvent
from indexer.apps.ingest.exceptions import ConflictError, DuplicateEventError
from indexer.apps.ingest.registry import handles
from indexer.apps.tokens.models import MorTransfer


def staking_addresses(addresses: Optional[Iterable[str]] = None) -> frozenset:
    if addresses is None:
        addresses = getattr(settings, "STAKING_CONTRACT_ADDRESSES", [])
    return frozenset(a.lower() for a in addresses)


def classify_transfer(from_address: str, to_address: str, staking: frozenset):
    """(is_staking_deposit, is_staking_withdraw) for a transfer between two addresses."""
    return to_address.lower() in staking, from_address.lower() in staking


@handles("MorToken", "Transfer", description="MOR token transfer")
class MorTransferHandler(EventHandler):
    def __init__(self, store, resolver=None, staking: Optional[Iterable[str]] = None):
        super().__init__(store, resolver)
        self.staking = staking_addresses(staking)

    def record(self, event: RawEvent) -> None:
        sender = event.args["from"]
        recipient = event.args["to"]
        is_deposit, is_withdraw = classify_transfer(sender, recipient, self.staking)
        try:
            self.store.insert(
                MorTransfer,
                id=event.event_id,
                from_address=sender.lower(),
                to_address=recipient.lower(),
                value=int(event.args["value"]),
                block_number=event.block_number,
                block_timestamp=event.block_timestamp,
                transaction_hash=event.transaction_hash,
                log_index=event.log_index,
                chain_id=event.chain_id,
                is_staking_deposit=is_deposit,
                is_staking_withdraw=is_withdraw,
                # a Transfer log does not carry the pool id
                related_project_id=None,
            )
        except ConflictError:
            raise DuplicateEventError(MorTransfer._meta.db_table, event.event_id)

"""
Drives one chain: fetch block ranges from the chain source and hand them to
the router. One runner per chain; chains never share a runner.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from django.conf import settings
from django.db import transaction

from .models import ChainCursor
from .router import BatchResult, EventRouter, EventState

logger = logging.getLogger(__name__)


@dataclass
class RunSummary:
    chain_id: int
    from_block: int
    to_block: int
    counts: Dict[EventState, int] = field(default_factory=dict)
    stopped_state: Optional[EventState] = None
    stopped_event_id: Optional[str] = None

    def merge(self, result: BatchResult) -> None:
        for state, n in result.counts.items():
            self.counts[state] = self.counts.get(state, 0) + n
        if result.stopped:
            self.stopped_state = result.stopped_state
            self.stopped_event_id = result.stopped_at.event_id

    def count(self, state: EventState) -> int:
        return self.counts.get(state, 0)


class ChainIndexer:
    """
    Poll loop for one chain.

    Args:
        chain_name: Key into settings.INDEXER_CHAINS
        source: ChainSource (or anything with fetch/latest_block/start_block)
        resolver: StakingStateResolver for the chain
        router: Optional pre-built router
    """

    def __init__(
        self,
        chain_name: Optional[str] = None,
        source=None,
        resolver=None,
        router: Optional[EventRouter] = None,
        batch_size: Optional[int] = None,
        confirmations: Optional[int] = None,
    ):
        self.chain_name = chain_name or settings.CHAIN_NAME
        self.chain_id = settings.INDEXER_CHAINS[self.chain_name]["chain_id"]
        if source is None:
            from indexer.apps.chain.services.source import ChainSource

            source = ChainSource(self.chain_name)
        if resolver is None and router is None:
            from indexer.apps.chain.services.resolver import StakingStateResolver

            resolver = StakingStateResolver(self.chain_name)
        self.source = source
        self.router = router or EventRouter(self.chain_id, resolver=resolver)
        self.batch_size = batch_size or settings.INDEXER_BLOCK_BATCH_SIZE
        self.confirmations = (
            settings.INDEXER_CONFIRMATIONS if confirmations is None else confirmations
        )

    def next_block(self) -> int:
        """
        First block of the next pass.

        Resumes after the last fully scanned block; failing that at the block
        of the last applied event (already-applied events there come back as
        duplicates); failing that at the contracts' start block.
        """
        cursor = ChainCursor.objects.filter(chain_id=self.chain_id).first()
        if cursor is not None and cursor.scanned_block is not None:
            return cursor.scanned_block + 1
        if cursor is not None and cursor.last_block is not None:
            return cursor.last_block
        return self.source.start_block

    def _mark_scanned(self, block: int) -> None:
        with transaction.atomic():
            cursor, _ = ChainCursor.objects.select_for_update().get_or_create(
                chain_id=self.chain_id
            )
            if cursor.scanned_block is None or block > cursor.scanned_block:
                cursor.scanned_block = block
                cursor.save(update_fields=["scanned_block", "updated_at"])

    def _route_range(self, summary: RunSummary, from_block: int, to_block: int, mark: bool) -> None:
        start = from_block
        while start <= to_block:
            end = min(start + self.batch_size - 1, to_block)
            result = self.router.process_batch(self.source.fetch(start, end))
            summary.merge(result)
            if result.stopped:
                logger.error(
                    f"Chain {self.chain_id} stopped at {summary.stopped_event_id} "
                    f"({summary.stopped_state.value})"
                )
                return
            if mark:
                self._mark_scanned(end)
            start = end + 1

    def run_once(self, to_block: Optional[int] = None) -> RunSummary:
        """Index from the cursor up to the confirmed head (or to_block)."""
        self.router.ensure_not_halted()
        head = self.source.latest_block() - self.confirmations
        if to_block is not None:
            head = min(head, to_block)
        start = self.next_block()
        summary = RunSummary(chain_id=self.chain_id, from_block=start, to_block=head)
        if start > head:
            logger.debug(f"Chain {self.chain_id} up to date at block {head}")
            return summary
        self._route_range(summary, start, head, mark=True)
        return summary

    def replay(self, from_block: int, to_block: int) -> RunSummary:
        """
        Re-deliver a block range (reorg recovery, backfill checks).

        Already-applied events are rejected as duplicates; anything new behind
        the cursor halts the chain as out of order. The scan mark is not moved.
        """
        self.router.ensure_not_halted()
        summary = RunSummary(chain_id=self.chain_id, from_block=from_block, to_block=to_block)
        self._route_range(summary, from_block, to_block, mark=False)
        return summary

    def run_forever(
        self,
        poll_interval: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        max_passes: Optional[int] = None,
    ) -> None:
        """
        Poll until the chain halts or max_passes is reached.

        A parked event stays at the head of the chain and is retried on the
        next pass.
        """
        interval = settings.INDEXER_POLL_INTERVAL_SECONDS if poll_interval is None else poll_interval
        passes = 0
        while max_passes is None or passes < max_passes:
            summary = self.run_once()
            passes += 1
            if summary.stopped_state == EventState.HALTED:
                return
            sleep(interval)

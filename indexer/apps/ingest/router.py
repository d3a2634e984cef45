"""
Event router: dispatches each raw event of one chain to its handler inside a
single transaction and decides what happens when that fails.

    RECEIVED -> NORMALIZED -> APPLIED -> COMMITTED
    RECEIVED -> REJECTED_DUPLICATE      (ledger row already present)
    RECEIVED -> IGNORED                 (no handler for the contract/event pair)
    RECEIVED -> PARKED                  (state reads exhausted; chain waits here)
    RECEIVED -> HALTED                  (integrity error; chain stops)
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from .events import RawEvent
from .exceptions import (
    FATAL_ERRORS,
    ChainHaltedError,
    DuplicateEventError,
    OutOfOrderEventError,
    StateUnavailableError,
)
from .models import ChainCursor, ParkedEvent
from .registry import get_handler_meta
from .store import EntityStore, store as default_store

logger = logging.getLogger(__name__)


class EventState(str, Enum):
    RECEIVED = "received"
    NORMALIZED = "normalized"
    APPLIED = "applied"
    COMMITTED = "committed"
    REJECTED_DUPLICATE = "rejected_duplicate"
    IGNORED = "ignored"
    PARKED = "parked"
    HALTED = "halted"


# Outcomes after which the rest of the batch must not be applied.
STOPPING_STATES = (EventState.PARKED, EventState.HALTED)


@dataclass
class BatchResult:
    chain_id: int
    counts: Dict[EventState, int] = field(default_factory=dict)
    last_committed: Optional[Tuple[int, int]] = None
    stopped_at: Optional[RawEvent] = None
    stopped_state: Optional[EventState] = None

    def add(self, event: RawEvent, state: EventState) -> None:
        self.counts[state] = self.counts.get(state, 0) + 1
        if state == EventState.COMMITTED:
            self.last_committed = event.position
        if state in STOPPING_STATES:
            self.stopped_at = event
            self.stopped_state = state

    @property
    def stopped(self) -> bool:
        return self.stopped_state is not None

    def count(self, state: EventState) -> int:
        return self.counts.get(state, 0)


class EventRouter:
    """
    Applies the events of one chain, strictly in (block number, log index) order.

    Args:
        chain_id: Chain whose cursor this router advances
        resolver: External state resolver handed to handlers
        store: Entity store (defaults to the ORM store)
        attempts: State-read attempts per event before it is parked
        backoff: Base delay in seconds, doubled after each failed attempt
        sleep: Injected for tests
    """

    def __init__(
        self,
        chain_id: int,
        resolver=None,
        store: EntityStore = None,
        attempts: Optional[int] = None,
        backoff: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.chain_id = chain_id
        self.resolver = resolver
        self.store = store or default_store
        self.attempts = attempts or settings.INDEXER_STATE_READ_ATTEMPTS
        self.backoff = settings.INDEXER_RETRY_BACKOFF_SECONDS if backoff is None else backoff
        self.sleep = sleep
        self._warned_unknown = set()

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def process_batch(self, events: Iterable[RawEvent]) -> BatchResult:
        """
        Route a batch in order, stopping at the first parked or halted event.

        Raises ChainHaltedError if the chain was already halted, and
        OutOfOrderEventError (before touching the store) if the batch is not
        strictly ordered or mixes chains.
        """
        events = list(events)
        self._check_batch(events)
        self.ensure_not_halted()

        result = BatchResult(chain_id=self.chain_id)
        for event in events:
            state = self.process(event)
            result.add(event, state)
            if state in STOPPING_STATES:
                break
        logger.info(
            f"Chain {self.chain_id} batch: "
            + ", ".join(f"{s.value}={n}" for s, n in result.counts.items())
        )
        return result

    def _check_batch(self, events: List[RawEvent]) -> None:
        previous = None
        for event in events:
            self._check_chain(event)
            if previous is not None and event.position <= previous.position:
                raise OutOfOrderEventError(
                    f"batch not ordered: {event.event_id} {event.position} "
                    f"after {previous.event_id} {previous.position}"
                )
            previous = event

    def _check_chain(self, event: RawEvent) -> None:
        if event.chain_id != self.chain_id:
            raise OutOfOrderEventError(
                f"event {event.event_id} is for chain {event.chain_id}, router is for {self.chain_id}"
            )

    def ensure_not_halted(self) -> None:
        cursor = ChainCursor.objects.filter(chain_id=self.chain_id).first()
        if cursor is not None and cursor.halted:
            raise ChainHaltedError(self.chain_id, cursor.halt_reason)

    # ------------------------------------------------------------------
    # Single events
    # ------------------------------------------------------------------

    def process(self, event: RawEvent) -> EventState:
        """Route one event. Raises OutOfOrderEventError for an event of another chain."""
        self._check_chain(event)
        meta = get_handler_meta(event.contract_name, event.event_name)
        if meta is None:
            self._log_unknown(event)
            return EventState.IGNORED

        handler = meta.cls(store=self.store, resolver=self.resolver)
        last_error: Optional[StateUnavailableError] = None

        for attempt in range(1, self.attempts + 1):
            try:
                self._apply(handler, event)
            except DuplicateEventError:
                logger.info(f"Duplicate {event.contract_name}:{event.event_name} {event.event_id}; skipped")
                return EventState.REJECTED_DUPLICATE
            except StateUnavailableError as e:
                last_error = e
                if attempt < self.attempts:
                    delay = self.backoff * (2 ** (attempt - 1))
                    logger.warning(
                        f"State read failed for {event.event_id} "
                        f"(attempt {attempt}/{self.attempts}), retrying in {delay:.2f}s: {e}"
                    )
                    self.sleep(delay)
                continue
            except FATAL_ERRORS as e:
                self.halt(f"{type(e).__name__} at {event.event_id}: {e}")
                return EventState.HALTED
            return EventState.COMMITTED

        self._park(event, last_error)
        return EventState.PARKED

    def _apply(self, handler, event: RawEvent) -> None:
        """One atomic transaction: cursor lock, ledger insert, projections, cursor advance."""
        state = EventState.RECEIVED
        with transaction.atomic():
            cursor, _ = ChainCursor.objects.select_for_update().get_or_create(
                chain_id=self.chain_id
            )
            if cursor.halted:
                raise ChainHaltedError(self.chain_id, cursor.halt_reason)

            # the ledger insert comes first so a replay stops before any other work
            handler.record(event)
            state = EventState.NORMALIZED

            if cursor.is_behind(*event.position):
                raise OutOfOrderEventError(
                    f"{event.event_id} at {event.position} is not after cursor {cursor.position()}"
                )

            handler.apply(event)
            state = EventState.APPLIED

            cursor.last_block, cursor.last_log_index = event.position
            cursor.save(update_fields=["last_block", "last_log_index", "updated_at"])
            ParkedEvent.objects.filter(
                chain_id=self.chain_id, event_id=event.event_id, resolved_at__isnull=True
            ).update(resolved_at=timezone.now())
        logger.debug(f"{event.contract_name}:{event.event_name} {event.event_id} {state.value} -> committed")

    def _log_unknown(self, event: RawEvent) -> None:
        if event.key in self._warned_unknown:
            logger.debug(f"Ignoring {event.contract_name}:{event.event_name} {event.event_id}")
            return
        self._warned_unknown.add(event.key)
        logger.warning(
            f"No handler for {event.contract_name}:{event.event_name}; ignoring {event.event_id}"
        )

    # ------------------------------------------------------------------
    # Park / halt bookkeeping (runs after the event transaction rolled back)
    # ------------------------------------------------------------------

    def _park(self, event: RawEvent, error: Optional[Exception]) -> None:
        with transaction.atomic():
            parked, _ = ParkedEvent.objects.select_for_update().get_or_create(
                chain_id=self.chain_id,
                event_id=event.event_id,
                defaults={
                    "contract_name": event.contract_name,
                    "event_name": event.event_name,
                    "block_number": event.block_number,
                    "log_index": event.log_index,
                    "payload": event.to_payload(),
                },
            )
            parked.attempts += self.attempts
            parked.last_error = str(error or "")
            parked.resolved_at = None
            parked.save()
        logger.error(
            f"Parked {event.contract_name}:{event.event_name} {event.event_id} on chain "
            f"{self.chain_id} after {self.attempts} attempts: {error}"
        )

    def halt(self, reason: str) -> None:
        ChainCursor.objects.update_or_create(
            chain_id=self.chain_id, defaults={"halted": True, "halt_reason": reason}
        )
        logger.error(f"Halted chain {self.chain_id}: {reason}")

    def resume(self) -> bool:
        """Clear a halt. Returns False if the chain was not halted."""
        updated = ChainCursor.objects.filter(chain_id=self.chain_id, halted=True).update(
            halted=False, halt_reason=""
        )
        if updated:
            logger.info(f"Resumed chain {self.chain_id}")
        return bool(updated)

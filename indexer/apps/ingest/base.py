from abc import ABC, abstractmethod

from indexer.apps.ingest.events import RawEvent
from indexer.apps.ingest.store import EntityStore


# Base event handler
class EventHandler(ABC):
    """
    Base class for the routine bound to one (contract, event name) pair.

    Handlers split their work in two:
    1. record() writes the immutable ledger row; it is the first mutation of
       the event transaction and raises DuplicateEventError on replay
    2. apply() updates the projections (users, projects, counters)

    Both run inside the router's transaction. Handlers must not read the
    wall clock or keep state between events; timestamps come from the event.
    """

    contract: str = ""
    event: str = ""

    def __init__(self, store: EntityStore, resolver=None):
        self.store = store
        self.resolver = resolver

    @abstractmethod
    def record(self, event: RawEvent) -> None:
        raise NotImplementedError("record must be implemented by sub-classes")

    def apply(self, event: RawEvent) -> None:
        """Projection updates; ledger-only handlers leave this empty."""

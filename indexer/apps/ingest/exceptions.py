"""
Error taxonomy for the materialization engine.

Store errors (ConflictError, NotFoundError) are raised by the entity store;
the event-level errors below them decide what the router does with an event.
"""


class IndexerError(Exception):
    """Base class for every error raised by the indexer."""


class ConflictError(IndexerError):
    """Insert targeted a key that already exists."""

    def __init__(self, table: str, key):
        self.table = table
        self.key = key
        super().__init__(f"{table} row {key!r} already exists")


class NotFoundError(IndexerError):
    """Update or lock targeted a row that does not exist."""

    def __init__(self, table: str, key):
        self.table = table
        self.key = key
        super().__init__(f"{table} row {key!r} does not exist")


class DuplicateEventError(ConflictError):
    """The ledger already holds this (transaction hash, log index). Replays end here."""


class DuplicatePoolError(ConflictError):
    """A second, different creation event for an existing pool id."""


class StateUnavailableError(IndexerError):
    """A point-in-time contract read could not be serviced."""


class OutOfOrderEventError(IndexerError):
    """An event arrived at or behind the chain cursor and was not a replay."""


class ChainHaltedError(IndexerError):
    """The chain's pipeline was halted by a fatal integrity error."""

    def __init__(self, chain_id: int, reason: str = ""):
        self.chain_id = chain_id
        self.reason = reason
        super().__init__(f"chain {chain_id} is halted: {reason}")


class EventParkedError(IndexerError):
    """A batch stopped because an event exhausted its state-read attempts."""

    def __init__(self, chain_id: int, event_id: str):
        self.chain_id = chain_id
        self.event_id = event_id
        super().__init__(f"chain {chain_id} stopped at parked event {event_id}")


# Classes that would materialize an inconsistent snapshot if the chain kept going.
FATAL_ERRORS = (DuplicatePoolError, NotFoundError, OutOfOrderEventError)

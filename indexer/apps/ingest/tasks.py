import logging
from typing import Optional

from celery import shared_task

from .exceptions import ChainHaltedError, EventParkedError
from .router import EventState
from .runner import ChainIndexer

logger = logging.getLogger(__name__)


@shared_task(queue="indexer")
def index_chain(chain_name: str, to_block: Optional[int] = None) -> dict:
    """
    One indexing pass for a chain, run by beat every poll interval.

    A halted chain is logged and skipped until an operator runs resume_chain.
    A pass that stops on a parked event fails the task so it shows up in the
    worker's error reporting; the next scheduled pass retries the event.
    """
    try:
        summary = ChainIndexer(chain_name).run_once(to_block=to_block)
    except ChainHaltedError as e:
        logger.error(f"Skipping {chain_name}: {e}")
        return {"chain": chain_name, "halted": True}

    if summary.stopped_state == EventState.PARKED:
        raise EventParkedError(summary.chain_id, summary.stopped_event_id)

    return {
        "chain": chain_name,
        "halted": summary.stopped_state == EventState.HALTED,
        "from_block": summary.from_block,
        "to_block": summary.to_block,
        "counts": {state.value: n for state, n in summary.counts.items()},
    }

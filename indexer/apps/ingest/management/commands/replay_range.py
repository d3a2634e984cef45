from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from indexer.apps.ingest.exceptions import ChainHaltedError
from indexer.apps.ingest.router import EventState
from indexer.apps.ingest.runner import ChainIndexer


class Command(BaseCommand):
    help = (
        "Re-deliver a block range. Already-applied events come back as duplicates; "
        "anything new behind the cursor halts the chain."
    )

    def add_arguments(self, parser):
        parser.add_argument("--chain", dest="chain", default=settings.CHAIN_NAME)
        parser.add_argument("--from-block", dest="from_block", type=int, required=True)
        parser.add_argument("--to-block", dest="to_block", type=int, required=True)

    def handle(self, *args, **options):
        chain = options["chain"]
        if chain not in settings.INDEXER_CHAINS:
            raise CommandError(f"Unknown chain {chain!r}")
        if options["from_block"] > options["to_block"]:
            raise CommandError("--from-block must not be after --to-block")

        try:
            summary = ChainIndexer(chain).replay(options["from_block"], options["to_block"])
        except ChainHaltedError as e:
            raise CommandError(str(e))

        for state in EventState:
            n = summary.count(state)
            if n:
                self.stdout.write(f"{state.value}: {n}")
        if summary.stopped_state is not None:
            raise CommandError(f"Replay stopped ({summary.stopped_state.value}) at {summary.stopped_event_id}.")
        self.stdout.write(self.style.SUCCESS("Replay complete."))

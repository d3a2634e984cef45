from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from indexer.apps.ingest.exceptions import ChainHaltedError
from indexer.apps.ingest.router import EventState
from indexer.apps.ingest.runner import ChainIndexer


class Command(BaseCommand):
    help = "Index a chain: poll until halted, or a single pass with --once."

    def add_arguments(self, parser):
        parser.add_argument(
            "--chain",
            dest="chain",
            default=settings.CHAIN_NAME,
            help=f"Chain name from INDEXER_CHAINS (default: {settings.CHAIN_NAME}).",
        )
        parser.add_argument(
            "--once", action="store_true", help="Run one pass up to the confirmed head and exit."
        )
        parser.add_argument(
            "--to-block",
            dest="to_block",
            type=int,
            help="With --once, stop at this block instead of the head.",
        )
        parser.add_argument(
            "--poll-interval",
            dest="poll_interval",
            type=float,
            help="Seconds between passes (default: INDEXER_POLL_INTERVAL_SECONDS).",
        )

    def handle(self, *args, **options):
        chain = options["chain"]
        if chain not in settings.INDEXER_CHAINS:
            raise CommandError(f"Unknown chain {chain!r}; configured: {', '.join(settings.INDEXER_CHAINS)}")

        indexer = ChainIndexer(chain)
        try:
            if not options["once"]:
                self.stdout.write(f"Indexing {chain} (chain id {indexer.chain_id})...")
                indexer.run_forever(poll_interval=options["poll_interval"])
                raise CommandError(f"Chain {chain} halted; inspect it and run resume_chain.")

            summary = indexer.run_once(to_block=options["to_block"])
        except ChainHaltedError as e:
            raise CommandError(str(e))

        counts = ", ".join(f"{s.value}={n}" for s, n in summary.counts.items()) or "no events"
        self.stdout.write(f"Blocks {summary.from_block}-{summary.to_block}: {counts}")
        if summary.stopped_state == EventState.HALTED:
            raise CommandError(f"Chain halted at {summary.stopped_event_id}.")
        if summary.stopped_state == EventState.PARKED:
            self.stdout.write(self.style.WARNING(f"Stopped at parked event {summary.stopped_event_id}."))
            return
        self.stdout.write(self.style.SUCCESS("Done."))

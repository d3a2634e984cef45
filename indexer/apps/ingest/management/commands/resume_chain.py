from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from indexer.apps.ingest.models import ChainCursor
from indexer.apps.ingest.router import EventRouter


class Command(BaseCommand):
    help = "Clear the halt flag of a chain after the cause has been fixed."

    def add_arguments(self, parser):
        parser.add_argument("--chain", dest="chain", default=settings.CHAIN_NAME)

    def handle(self, *args, **options):
        chain = options["chain"]
        if chain not in settings.INDEXER_CHAINS:
            raise CommandError(f"Unknown chain {chain!r}")
        chain_id = settings.INDEXER_CHAINS[chain]["chain_id"]

        cursor = ChainCursor.objects.filter(chain_id=chain_id).first()
        if cursor is not None and cursor.halted:
            self.stdout.write(f"Halt reason: {cursor.halt_reason}")
        if not EventRouter(chain_id).resume():
            self.stdout.write(self.style.WARNING(f"Chain {chain} was not halted."))
            return
        self.stdout.write(self.style.SUCCESS(f"Chain {chain} resumed."))

# indexer/ingest/models.py
from django.db import models


class ChainCursor(models.Model):
    """Position of the last event applied for a chain (block, log index)."""

    chain_id = models.PositiveIntegerField(primary_key=True)
    last_block = models.BigIntegerField(null=True, blank=True)
    last_log_index = models.IntegerField(null=True, blank=True)
    # highest block whose whole range was fetched and routed without stopping
    scanned_block = models.BigIntegerField(null=True, blank=True)
    halted = models.BooleanField(default=False, db_index=True)
    halt_reason = models.TextField(blank=True, default="")
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "chain_cursor"

    def position(self):
        if self.last_block is None:
            return None
        return (self.last_block, self.last_log_index)

    def is_behind(self, block_number: int, log_index: int) -> bool:
        """True when (block_number, log_index) does not come after the cursor."""
        pos = self.position()
        return pos is not None and (block_number, log_index) <= pos


class ParkedEvent(models.Model):
    """Events whose authoritative state read kept failing; the chain waits on them."""

    chain_id = models.PositiveIntegerField(db_index=True)
    event_id = models.CharField(max_length=160)
    contract_name = models.CharField(max_length=64)
    event_name = models.CharField(max_length=64)
    block_number = models.BigIntegerField()
    log_index = models.IntegerField()
    payload = models.JSONField(default=dict, blank=True)
    attempts = models.PositiveIntegerField(default=0)
    last_error = models.TextField(blank=True, default="")
    parked_at = models.DateTimeField(auto_now=True)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "parked_event"
        constraints = [
            models.UniqueConstraint(
                fields=["chain_id", "event_id"], name="uniq_parked_event"
            )
        ]
        indexes = [models.Index(fields=["chain_id", "resolved_at"])]

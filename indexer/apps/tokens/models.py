# indexer/tokens/models.py
from django.db import models

from indexer.apps.builders.models import uint256_field


class MorTransfer(models.Model):
    """MOR ERC-20 Transfer ledger; one row per log, never updated."""

    id = models.CharField(primary_key=True, max_length=96)  # "<tx hash>-<log index>"
    from_address = models.CharField(max_length=42, db_column="from", db_index=True)
    to_address = models.CharField(max_length=42, db_column="to", db_index=True)
    value = uint256_field()
    block_number = models.BigIntegerField(db_index=True)
    block_timestamp = models.BigIntegerField()
    transaction_hash = models.CharField(max_length=66)
    log_index = models.IntegerField()
    chain_id = models.PositiveIntegerField()
    is_staking_deposit = models.BooleanField(default=False, db_index=True)
    is_staking_withdraw = models.BooleanField(default=False, db_index=True)
    related_project_id = models.CharField(max_length=66, null=True, blank=True)

    class Meta:
        db_table = "mor_transfer"
        ordering = ["block_number", "log_index"]
        constraints = [
            models.UniqueConstraint(
                fields=["transaction_hash", "log_index"], name="uniq_mor_transfer_log"
            )
        ]

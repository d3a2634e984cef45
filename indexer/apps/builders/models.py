# indexer/builders/models.py
from django.db import models


class Uint256Field(models.DecimalField):
    """NUMERIC(78, 0): exact storage for any uint256, read back as int."""

    def __init__(self, *args, **kwargs):
        kwargs["max_digits"] = 78
        kwargs["decimal_places"] = 0
        super().__init__(*args, **kwargs)

    def from_db_value(self, value, expression, connection):
        if value is None:
            return value
        return int(value)


def uint256_field(**kwargs):
    kwargs.setdefault("default", 0)
    return Uint256Field(**kwargs)


class BuildersProject(models.Model):
    """A staking pool; aggregates are recomputed from its users."""

    id = models.CharField(primary_key=True, max_length=66)  # bytes32 pool id, 0x-hex
    name = models.CharField(max_length=255, blank=True, default="")
    admin = models.CharField(max_length=42, db_index=True)
    total_staked = uint256_field()
    total_users = models.BigIntegerField(default=0)
    total_claimed = uint256_field()
    minimal_deposit = uint256_field()
    withdraw_lock_period_after_deposit = models.BigIntegerField(default=0)
    claim_lock_end = models.BigIntegerField(default=0)
    starts_at = models.BigIntegerField(default=0)
    chain_id = models.PositiveIntegerField(db_index=True)
    contract_address = models.CharField(max_length=42, db_index=True)
    created_at = models.BigIntegerField()  # block timestamp (unix seconds)
    created_at_block = models.BigIntegerField()
    creation_tx_hash = models.CharField(max_length=66)
    creation_log_index = models.IntegerField()

    class Meta:
        db_table = "builders_project"
        ordering = ["created_at_block", "creation_log_index"]

    def __str__(self):
        return self.name or self.id


class BuildersUser(models.Model):
    """One address's position in one project, mirrored from the contract's usersData."""

    id = models.CharField(primary_key=True, max_length=120)  # "<project id>-<address>"
    project = models.ForeignKey(
        BuildersProject, on_delete=models.PROTECT, related_name="users"
    )
    address = models.CharField(max_length=42, db_index=True)
    staked = uint256_field()
    claimed = uint256_field()
    last_stake = models.BigIntegerField(default=0)
    claim_lock_end = models.BigIntegerField(default=0)
    last_deposit = models.BigIntegerField(default=0)
    virtual_deposited = uint256_field()
    chain_id = models.PositiveIntegerField()

    class Meta:
        db_table = "builders_user"
        ordering = ["project_id", "address"]
        indexes = [models.Index(fields=["project", "address"])]

    @staticmethod
    def make_id(project_id: str, address: str) -> str:
        return f"{project_id}-{address.lower()}"


class StakingEvent(models.Model):
    """Deposit/withdraw audit trail; one row per raw log, never updated."""

    KIND = [("DEPOSIT", "Deposit"), ("WITHDRAW", "Withdraw")]
    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"

    id = models.CharField(primary_key=True, max_length=96)  # "<tx hash>-<log index>"
    # no FK constraint: the ledger stands on its own, independent of projections
    project = models.ForeignKey(
        BuildersProject,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name="staking_events",
    )
    user_address = models.CharField(max_length=42, db_index=True)
    event_type = models.CharField(max_length=8, choices=KIND, db_index=True)
    amount = uint256_field()
    block_number = models.BigIntegerField(db_index=True)
    block_timestamp = models.BigIntegerField()
    transaction_hash = models.CharField(max_length=66)
    log_index = models.IntegerField()
    chain_id = models.PositiveIntegerField()

    class Meta:
        db_table = "staking_event"
        ordering = ["block_number", "log_index"]
        constraints = [
            models.UniqueConstraint(
                fields=["transaction_hash", "log_index"], name="uniq_staking_event_log"
            )
        ]
        indexes = [models.Index(fields=["project", "user_address", "block_number"])]


class Counters(models.Model):
    """Process-wide totals; a single row keyed by GLOBAL_ID."""

    GLOBAL_ID = "global"

    id = models.CharField(primary_key=True, max_length=16, default=GLOBAL_ID)
    total_builders_projects = models.BigIntegerField(default=0)
    total_subnets = models.BigIntegerField(default=0)
    total_staked = uint256_field()
    total_users = models.BigIntegerField(default=0)
    last_updated = models.BigIntegerField(default=0)  # block timestamp

    class Meta:
        db_table = "counters"
        ordering = ["id"]
        verbose_name_plural = "counters"

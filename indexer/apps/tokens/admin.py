from django.contrib import admin
from .models import MorTransfer


@admin.register(MorTransfer)
class MorTransferAdmin(admin.ModelAdmin):
    list_display = (
        "transaction_hash",
        "log_index",
        "from_address",
        "to_address",
        "value",
        "is_staking_deposit",
        "is_staking_withdraw",
        "block_number",
    )
    list_filter = ("is_staking_deposit", "is_staking_withdraw", "chain_id")
    search_fields = ("transaction_hash", "from_address", "to_address")

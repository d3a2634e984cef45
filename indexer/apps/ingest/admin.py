from django.contrib import admin
from .models import ChainCursor, ParkedEvent


@admin.register(ChainCursor)
class ChainCursorAdmin(admin.ModelAdmin):
    list_display = ("chain_id", "last_block", "last_log_index", "scanned_block", "halted", "updated_at")
    list_filter = ("halted",)


@admin.register(ParkedEvent)
class ParkedEventAdmin(admin.ModelAdmin):
    list_display = ("event_id", "chain_id", "contract_name", "event_name", "block_number", "attempts", "resolved_at")
    list_filter = ("chain_id", "contract_name", "event_name")
    search_fields = ("event_id",)
    date_hierarchy = "parked_at"

from django.contrib import admin
from .models import BuildersProject, BuildersUser, StakingEvent, Counters


@admin.register(BuildersProject)
class BuildersProjectAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "admin", "total_staked", "total_users", "chain_id", "created_at_block")
    search_fields = ("id", "name", "admin")


@admin.register(BuildersUser)
class BuildersUserAdmin(admin.ModelAdmin):
    list_display = ("id", "project", "address", "staked", "last_stake")
    search_fields = ("address", "project__id")


@admin.register(StakingEvent)
class StakingEventAdmin(admin.ModelAdmin):
    list_display = ("id", "project_id", "user_address", "event_type", "amount", "block_number")
    list_filter = ("event_type", "chain_id")
    search_fields = ("transaction_hash", "user_address", "project__id")


@admin.register(Counters)
class CountersAdmin(admin.ModelAdmin):
    list_display = ("id", "total_builders_projects", "total_staked", "total_users", "last_updated")

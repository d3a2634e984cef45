"""
Aggregate maintenance for projects and the global counters row.

Totals are always recomputed from member rows, never adjusted by deltas;
user rows are overwritten wholesale from contract reads.
"""

import logging

from django.db.models import Count, Sum

from indexer.apps.builders.models import BuildersProject, BuildersUser, Counters
from indexer.apps.ingest.store import EntityStore, store as default_store

logger = logging.getLogger(__name__)


def _as_int(value) -> int:
    return int(value or 0)


class AggregateMaintainer:
    def __init__(self, store: EntityStore = None):
        self.store = store or default_store

    def refresh_project_totals(self, project_id: str) -> BuildersProject:
        """
        Recompute total_staked / total_users of a project from its users.

        Takes the project's row lock first so two events for the same pool
        serialize their read-modify-write. Raises NotFoundError for an unknown pool.
        """
        project = self.store.get_for_update(BuildersProject, project_id)
        totals = self.store.aggregate(
            BuildersUser,
            {"project_id": project_id},
            staked=Sum("staked"),
            users=Count("id"),
        )
        project.total_staked = _as_int(totals["staked"])
        project.total_users = _as_int(totals["users"])
        self.store.update(
            BuildersProject,
            project_id,
            total_staked=project.total_staked,
            total_users=project.total_users,
        )
        logger.debug(
            f"Project {project_id} totals: staked={project.total_staked} users={project.total_users}"
        )
        return project

    def get_or_create_counters(self, block_timestamp: int) -> Counters:
        """Lock the global counters row, creating it on first use."""
        counters, _ = Counters.objects.select_for_update().get_or_create(
            id=Counters.GLOBAL_ID, defaults={"last_updated": block_timestamp}
        )
        return counters

    def refresh_global_counters(self, block_timestamp: int) -> Counters:
        """Recompute the global counters row from the project table."""
        counters = self.get_or_create_counters(block_timestamp)
        totals = self.store.aggregate(
            BuildersProject,
            {},
            projects=Count("id"),
            staked=Sum("total_staked"),
            users=Sum("total_users"),
        )
        counters.total_builders_projects = _as_int(totals["projects"])
        counters.total_staked = _as_int(totals["staked"])
        counters.total_users = _as_int(totals["users"])
        counters.last_updated = max(counters.last_updated, block_timestamp)
        counters.save(
            update_fields=[
                "total_builders_projects",
                "total_staked",
                "total_users",
                "last_updated",
            ]
        )
        return counters


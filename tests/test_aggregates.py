import pytest
from django.db import transaction

from indexer.apps.builders.models import BuildersProject, BuildersUser, Counters
from indexer.apps.builders.services.aggregates import AggregateMaintainer
from indexer.apps.ingest.exceptions import NotFoundError

from .factories import make_project

pytestmark = pytest.mark.django_db


def _user(project_id, address, staked):
    return BuildersUser.objects.create(
        id=BuildersUser.make_id(project_id, address),
        project_id=project_id,
        address=address,
        staked=staked,
        chain_id=8453,
    )


def test_refresh_project_totals_recomputes_from_users():
    make_project("p1")
    make_project("p2")
    _user("p1", "0xa", 100)
    _user("p1", "0xb", 250)
    _user("p2", "0xc", 7)
    maintainer = AggregateMaintainer()

    with transaction.atomic():
        maintainer.refresh_project_totals("p1")
        maintainer.refresh_project_totals("p1")

    p1 = BuildersProject.objects.get(pk="p1")
    assert (p1.total_staked, p1.total_users) == (350, 2)
    p2 = BuildersProject.objects.get(pk="p2")
    assert (p2.total_staked, p2.total_users) == (0, 0)


def test_refresh_project_totals_without_users_is_zero():
    make_project("p1", total_staked=999, total_users=4)

    with transaction.atomic():
        AggregateMaintainer().refresh_project_totals("p1")

    p1 = BuildersProject.objects.get(pk="p1")
    assert (p1.total_staked, p1.total_users) == (0, 0)


def test_refresh_project_totals_unknown_project():
    with transaction.atomic(), pytest.raises(NotFoundError):
        AggregateMaintainer().refresh_project_totals("nope")


def test_refresh_global_counters():
    make_project("p1", total_staked=10, total_users=1)
    make_project("p2", total_staked=5, total_users=2)
    maintainer = AggregateMaintainer()

    with transaction.atomic():
        maintainer.refresh_global_counters(block_timestamp=2000)
        # an older timestamp never moves last_updated back
        counters = maintainer.refresh_global_counters(block_timestamp=1000)

    assert counters.id == Counters.GLOBAL_ID
    row = Counters.objects.get(pk=Counters.GLOBAL_ID)
    assert row.total_builders_projects == 2
    assert row.total_staked == 15
    assert row.total_users == 3
    assert row.last_updated == 2000
    assert Counters.objects.count() == 1


def test_amounts_read_back_as_int():
    make_project("p1")
    _user("p1", "0xa", 10**18)
    _user("p1", "0xb", 1)

    with transaction.atomic():
        AggregateMaintainer().refresh_project_totals("p1")

    staked = BuildersUser.objects.get(pk=BuildersUser.make_id("p1", "0xa")).staked
    assert type(staked) is int
    total = BuildersProject.objects.get(pk="p1").total_staked
    assert type(total) is int
    assert total == 10**18 + 1

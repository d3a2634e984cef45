import pytest
from django.db import transaction

from indexer.apps.builders.handlers import BUILDERS_USER_UPSERT
from indexer.apps.builders.models import BuildersProject, BuildersUser
from indexer.apps.ingest.exceptions import ConflictError, NotFoundError
from indexer.apps.ingest.store import UpsertSpec

from .factories import make_project, project_fields

pytestmark = pytest.mark.django_db


def _user_values(**overrides):
    values = {
        "id": BuildersUser.make_id("p1", "0xABC"),
        "project_id": "p1",
        "address": "0xabc",
        "staked": 500,
        "claimed": 0,
        "last_stake": 10,
        "claim_lock_end": 20,
        "last_deposit": 30,
        "virtual_deposited": 500,
        "chain_id": 8453,
    }
    values.update(overrides)
    return values


def test_insert_and_get(store):
    store.insert(BuildersProject, **project_fields("p1"))

    row = store.get(BuildersProject, "p1")
    assert row.name == "Pool One"
    assert store.get(BuildersProject, "missing") is None


def test_insert_conflict_leaves_transaction_usable(store):
    with transaction.atomic():
        store.insert(BuildersProject, **project_fields("p1"))
        with pytest.raises(ConflictError) as exc:
            store.insert(BuildersProject, **project_fields("p1", name="Other"))
        # still inside the same transaction
        assert store.get(BuildersProject, "p1").name == "Pool One"

    assert exc.value.table == "builders_project"
    assert exc.value.key == "p1"


def test_get_for_update_missing_raises(store):
    with transaction.atomic(), pytest.raises(NotFoundError):
        store.get_for_update(BuildersProject, "nope")


def test_update(store):
    make_project("p1")
    assert store.update(BuildersProject, "p1", total_users=3) == 1
    assert BuildersProject.objects.get(pk="p1").total_users == 3

    with pytest.raises(NotFoundError):
        store.update(BuildersProject, "nope", total_users=1)


def test_upsert_inserts_then_applies_only_listed_fields(store):
    make_project("p1")

    row, created = store.upsert(BuildersUser, _user_values(), BUILDERS_USER_UPSERT)
    assert created
    assert row.staked == 500

    row, created = store.upsert(
        BuildersUser,
        _user_values(staked=800, claimed=99, chain_id=1, last_stake=40),
        BUILDERS_USER_UPSERT,
    )
    assert not created

    row = BuildersUser.objects.get(pk="p1-0xabc")
    assert row.staked == 800
    assert row.last_stake == 40
    # not in BUILDERS_USER_UPSERT: left as inserted
    assert row.claimed == 0
    assert row.chain_id == 8453


def test_upsert_explicit_updates(store):
    make_project("p1")
    store.upsert(BuildersUser, _user_values(), BUILDERS_USER_UPSERT)

    store.upsert(BuildersUser, _user_values(staked=1), BUILDERS_USER_UPSERT, updates={"staked": 7})
    assert BuildersUser.objects.get(pk="p1-0xabc").staked == 7

    with pytest.raises(ValueError):
        store.upsert(BuildersUser, _user_values(), BUILDERS_USER_UPSERT, updates={"claimed": 1})


def test_upsert_rejects_fields_of_other_model(store):
    spec = UpsertSpec(model=BuildersProject, fields=("name",))
    with pytest.raises(ValueError):
        store.upsert(BuildersUser, _user_values(), spec)


def test_query_uses_declared_ordering(store):
    make_project("b", created_at_block=5)
    make_project("a", created_at_block=9)
    make_project("c", created_at_block=1)

    assert [p.id for p in store.query(BuildersProject)] == ["c", "b", "a"]
    assert [p.id for p in store.query(BuildersProject, order_by=["id"])] == ["a", "b", "c"]
    assert [p.id for p in store.query(BuildersProject, created_at_block__gt=4)] == ["b", "a"]

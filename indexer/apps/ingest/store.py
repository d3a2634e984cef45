"""
Entity store over the Django ORM.

Every call runs inside whatever transaction.atomic() block is open, so the
router's per-event transaction covers all mutations made through it.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple, Type

from django.db import IntegrityError, models, transaction

from .exceptions import ConflictError, NotFoundError


@dataclass(frozen=True)
class UpsertSpec:
    """Fields of an entity that an upsert may overwrite when the row already exists."""

    model: Type[models.Model]
    fields: Tuple[str, ...]

    def updates_from(self, values: Dict[str, Any]) -> Dict[str, Any]:
        return {f: values[f] for f in self.fields if f in values}

    def check(self, updates: Dict[str, Any]) -> None:
        extra = set(updates) - set(self.fields)
        if extra:
            raise ValueError(
                f"{self.model._meta.db_table}: fields not updatable on conflict: {sorted(extra)}"
            )


def _table(model: Type[models.Model]) -> str:
    return model._meta.db_table


class EntityStore:
    """Keyed get/insert/upsert/update/query with the indexer's error contract."""

    def get(self, model: Type[models.Model], key) -> Optional[models.Model]:
        return model.objects.filter(pk=key).first()

    def get_for_update(self, model: Type[models.Model], key) -> models.Model:
        """Fetch a row holding its write lock until the enclosing transaction ends."""
        row = model.objects.select_for_update().filter(pk=key).first()
        if row is None:
            raise NotFoundError(_table(model), key)
        return row

    def insert(self, model: Type[models.Model], **fields) -> models.Model:
        """
        Insert a new row.

        Runs in a savepoint so a key conflict leaves the outer transaction
        usable. Integrity errors that are not key conflicts are re-raised.
        """
        key = fields.get(model._meta.pk.attname)
        try:
            with transaction.atomic():
                return model.objects.create(**fields)
        except IntegrityError:
            if key is not None and model.objects.filter(pk=key).exists():
                raise ConflictError(_table(model), key)
            raise

    def upsert(
        self,
        model: Type[models.Model],
        values: Dict[str, Any],
        spec: UpsertSpec,
        updates: Optional[Dict[str, Any]] = None,
    ) -> Tuple[models.Model, bool]:
        """
        Insert `values` if the key is absent, otherwise apply only the spec's fields.

        `updates` overrides the conflict-time values; every key must be listed
        in the spec. Returns (row, created).
        """
        if spec.model is not model:
            raise ValueError(f"upsert spec is for {_table(spec.model)}, not {_table(model)}")
        key = values[model._meta.pk.attname]
        conflict_updates = spec.updates_from(values) if updates is None else dict(updates)
        spec.check(conflict_updates)

        row = model.objects.select_for_update().filter(pk=key).first()
        if row is None:
            try:
                return self.insert(model, **values), True
            except ConflictError:
                # Inserted by a concurrent transaction between the read and the insert.
                row = self.get_for_update(model, key)

        for name, value in conflict_updates.items():
            setattr(row, name, value)
        row.save(update_fields=list(conflict_updates))
        return row, False

    def update(self, model: Type[models.Model], key, **fields) -> int:
        updated = model.objects.filter(pk=key).update(**fields)
        if updated == 0:
            raise NotFoundError(_table(model), key)
        return updated

    def query(
        self,
        model: Type[models.Model],
        order_by: Optional[Iterable[str]] = None,
        **filters,
    ) -> List[models.Model]:
        """Rows matching `filters`, in the model's insertion ordering unless `order_by` is given."""
        qs = model.objects.filter(**filters)
        if order_by:
            qs = qs.order_by(*order_by)
        return list(qs)

    def aggregate(self, model: Type[models.Model], filters: Dict[str, Any], **aggregates):
        return model.objects.filter(**filters).aggregate(**aggregates)


store = EntityStore()

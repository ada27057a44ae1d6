"""Reference resolver: validates foreign keys and orders inserts.

Ids are UUIDs and are never remapped. A reference is satisfied when its
target already exists in the destination database or arrives in the same
manifest; the plan places every target collection before the collections
that point at it.
"""

from dataclasses import dataclass, field
from graphlib import TopologicalSorter
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from bizgov.services.entities import ENTITIES, deserialize_record


def dependency_order() -> list[str]:
    """Manifest collections ordered so referenced collections come first.

    Ties are broken by registry order, so the result is stable.
    """
    sorter = TopologicalSorter(
        {
            key: {target for target in spec.references.values() if target != key}
            for key, spec in ENTITIES.items()
        }
    )
    sorter.prepare()
    rank = {key: index for index, key in enumerate(ENTITIES)}

    order: list[str] = []
    while sorter.is_active():
        ready = sorted(sorter.get_ready(), key=rank.__getitem__)
        order.extend(ready)
        sorter.done(*ready)
    return order


async def load_existing_ids(session: AsyncSession) -> dict[str, set[str]]:
    """Primary keys already present in the destination, per collection."""
    existing: dict[str, set[str]] = {}
    for key, spec in ENTITIES.items():
        result = await session.execute(select(spec.model.id))
        existing[key] = set(result.scalars().all())
    return existing


@dataclass
class PlannedRecord:
    """One incoming record, converted to model field names."""

    entity: str
    record_id: str | None
    fields: dict[str, Any]
    dangling: list[str] = field(default_factory=list)


@dataclass
class PlanStep:
    """All incoming records of one collection."""

    entity: str
    records: list[PlannedRecord]


@dataclass
class InsertionPlan:
    """Collections in insertion order with their records."""

    steps: list[PlanStep]

    @property
    def order(self) -> list[str]:
        return [step.entity for step in self.steps]

    @property
    def dangling(self) -> list[PlannedRecord]:
        return [record for step in self.steps for record in step.records if record.dangling]


class ReferenceResolver:
    """Builds an insertion plan for a manifest against a destination."""

    def __init__(self, existing_ids: dict[str, set[str]]):
        self.existing_ids = existing_ids

    def plan(self, data: dict[str, list[dict[str, Any]]]) -> InsertionPlan:
        """Order the manifest's collections and flag dangling references.

        Args:
            data: Manifest key -> records in manifest (camelCase) form

        Returns:
            InsertionPlan whose steps follow :func:`dependency_order`
        """
        incoming_ids = {
            key: {record.get("id") for record in records if record.get("id")}
            for key, records in data.items()
            if key in ENTITIES
        }

        steps = []
        for key in dependency_order():
            if key not in data:
                continue
            spec = ENTITIES[key]
            planned = []
            for record in data[key]:
                fields = deserialize_record(record)
                item = PlannedRecord(entity=key, record_id=fields.get("id"), fields=fields)
                for fk, target in spec.references.items():
                    value = fields.get(fk)
                    if value is None:
                        continue
                    if value in self.existing_ids.get(target, set()):
                        continue
                    if value in incoming_ids.get(target, set()):
                        continue
                    item.dangling.append(f"{fk} -> {target} {value}")
                planned.append(item)
            steps.append(PlanStep(entity=key, records=planned))

        return InsertionPlan(steps=steps)

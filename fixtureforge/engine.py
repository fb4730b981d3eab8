# -*- coding: utf-8 -*-
"""Location: ./fixtureforge/engine.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: fixtureforge contributors

Materialization engine.

Runs a processing plan against the entity API in two phases:

1. In plan order, every fixture is created (or, for ``existing`` fixtures,
   looked up and optionally updated) with its deferred fields left out. The
   entity id is registered in the reference map as soon as it is known, so
   later fixtures can reference it immediately.
2. In plan order again, every created fixture with deferred fields is patched
   with the ids that now exist.

Each engine owns its reference map and creation ledger. ``cleanup`` deletes
everything the ledger recorded, newest first.
"""

# Standard
import logging
from typing import Any, Dict, List, Mapping, NamedTuple, Optional

# First-Party
from fixtureforge.document import clone, get_path, remove_path, set_path
from fixtureforge.entities import EntityAPI
from fixtureforge.errors import EntityCreateError
from fixtureforge.models import EntityHandle, FixtureDefinition, LifecyclePhase, ProcessingEntry
from fixtureforge.processing import DataProcessor, ProcessingContext

logger = logging.getLogger(__name__)


class LedgerEntry(NamedTuple):
    """One materialized entity, recorded for cleanup."""

    name: str
    entity_kind: str
    entity_id: Any


class MaterializationEngine:
    """Create the entities of a processing plan through an ``EntityAPI``."""

    def __init__(self, entity_api: EntityAPI, processor: Optional[DataProcessor] = None):
        """Initialize the engine.

        Args:
            entity_api: Remote entity operations.
            processor: Data processor for references and placeholders.
        """
        self.entity_api = entity_api
        self.processor = processor or DataProcessor()
        self.references: Dict[str, Any] = {}
        self.ledger: List[LedgerEntry] = []

    async def run(
        self,
        plan: List[ProcessingEntry],
        system_data: Optional[Mapping[str, Any]] = None,
        fixtures: Optional[Mapping[str, FixtureDefinition]] = None,
        context_data: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, EntityHandle]:
        """Materialize every entry of a plan.

        Args:
            plan: Ordered entries from ``build_plan``.
            system_data: Values seeded into the reference map before processing.
            fixtures: Fixtures visible to ``@include``; defaults to the plan's own.
            context_data: Values exposed as ``{context.*}`` placeholders.

        Returns:
            Dict[str, EntityHandle]: Fixture name -> final entity handle.

        Raises:
            EntityAPIError: If any create, find or update call fails.
            FixtureIncludeError: If an ``@include`` cannot be resolved.
        """
        system_data = dict(system_data or {})
        self.references.update(system_data)

        if fixtures is None:
            fixtures = {entry.name: entry.fixture for entry in plan}
        context = ProcessingContext(
            references=self.references,
            system_data=system_data,
            fixtures=fixtures,
            data=dict(context_data or {}),
        )

        for entry in plan:
            await self._materialize(entry, context)

        for entry in plan:
            if entry.phase is LifecyclePhase.CREATED and entry.deferred_fields:
                await self._patch_deferred(entry, context)

        return {entry.name: entry.entity for entry in plan}

    def _prepare(self, data: Any, entry: ProcessingEntry, context: ProcessingContext) -> Any:
        """Process a copy of ``data`` with the entry's deferred fields left out."""
        prepared = clone(data)
        if isinstance(prepared, dict):
            for path in entry.deferred_fields:
                remove_path(prepared, path)
        return self.processor.process(prepared, context)

    async def _materialize(self, entry: ProcessingEntry, context: ProcessingContext) -> None:
        fixture = entry.fixture
        kind = fixture.entity_kind

        if fixture.existing:
            criteria = fixture.lookup_criteria()
            if fixture.query is None:
                criteria = self._prepare(criteria, entry, context)
            else:
                criteria = self.processor.process(criteria, context)

            logger.debug("Looking up existing %s for fixture %s", kind, entry.name)
            entity = await self.entity_api.find(kind, criteria)
            if fixture.data is not None and "id" in entity:
                payload = self._prepare(fixture.data, entry, context)
                updated = await self.entity_api.update(kind, entity["id"], payload)
                if updated and "id" in updated:
                    entity = updated
                logger.info("Updated existing %s %s (id=%s)", kind, entry.name, entity["id"])
        else:
            payload = self._prepare(fixture.data, entry, context) if fixture.data is not None else {}
            entity = await self.entity_api.create(kind, payload)

        if not isinstance(entity, dict) or entity.get("id") is None:
            raise EntityCreateError(kind, f"entity for fixture '{entry.name}' has no id")

        entry.mark_created(entity)
        self.references[entry.name] = entity["id"]
        self.ledger.append(LedgerEntry(entry.name, kind, entity["id"]))
        if not fixture.existing:
            logger.info("Created %s %s (id=%s)", kind, entry.name, entity["id"])

    async def _patch_deferred(self, entry: ProcessingEntry, context: ProcessingContext) -> None:
        """Send the deferred fields of a created entry once their targets exist."""
        payload: Dict[str, Any] = {}
        for path, target in entry.deferred_fields.items():
            if target not in self.references:
                logger.debug("Skipping deferred field %s.%s: @%s was not materialized", entry.name, path, target)
                continue
            value = get_path(entry.fixture.data, path)
            if isinstance(value, list):
                set_path(payload, path, self.processor.process(value, context))
            else:
                set_path(payload, path, self.references[target])

        if not payload:
            return

        kind = entry.fixture.entity_kind
        entity_id = entry.entity["id"]
        updated = await self.entity_api.update(kind, entity_id, payload)
        entry.mark_updated(updated)
        logger.debug("Patched deferred fields of %s %s: %s", kind, entry.name, ", ".join(entry.deferred_fields))

    async def cleanup(self) -> None:
        """Delete every materialized entity, newest first.

        Failures are logged and skipped; the ledger and reference map are
        cleared afterwards.
        """
        for item in reversed(self.ledger):
            try:
                await self.entity_api.delete(item.entity_kind, item.entity_id)
                logger.debug("Deleted %s %s (id=%s)", item.entity_kind, item.name, item.entity_id)
            except Exception as exc:
                logger.warning("Failed to delete %s %s (id=%s): %s", item.entity_kind, item.name, item.entity_id, exc)

        self.ledger.clear()
        self.references.clear()

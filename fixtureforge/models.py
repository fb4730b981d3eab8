# -*- coding: utf-8 -*-
"""Location: ./fixtureforge/models.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: fixtureforge contributors

Fixture models.

The pydantic models validate composed fixture files. ``ProcessingEntry`` is
the mutable per-run state the materialization engine keeps for each named
fixture.

Examples:
    >>> fixture = FixtureDefinition.model_validate({"entity": "customer", "data": {"name": "A"}})
    >>> fixture.entity_kind, fixture.existing
    ('customer', False)
    >>> entry = ProcessingEntry(name="customer", fixture=fixture)
    >>> entry.phase.value
    'pending'
"""

# Future
from __future__ import annotations

# Standard
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# Third-Party
from pydantic import BaseModel, ConfigDict, Field

EntityHandle = Dict[str, Any]


class FixtureDefinition(BaseModel):
    """One declarative fixture record.

    Attributes:
        entity_kind: Logical entity type, mapped to an API endpoint.
        data: Field values; may be omitted for pure lookups.
        existing: Look up a pre-existing entity instead of creating one.
        query: Lookup criteria for ``existing`` records; ``data`` is used when absent.
        children: Nested named fixtures processed right after this one.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    entity_kind: str = Field(alias="entity", min_length=1)
    data: Optional[Any] = None
    existing: bool = False
    query: Optional[Dict[str, Any]] = None
    children: Optional[Dict[str, FixtureDefinition]] = None

    def lookup_criteria(self) -> Any:
        """Return the criteria used to find an existing entity.

        Examples:
            >>> FixtureDefinition(entity="user", data={"email": "a@b.c"}).lookup_criteria()
            {'email': 'a@b.c'}
            >>> FixtureDefinition(entity="user", data={"x": 1}, query={"id": 3}).lookup_criteria()
            {'id': 3}
        """
        return self.query if self.query is not None else self.data


FixtureDefinition.model_rebuild()


class FixtureDocument(BaseModel):
    """A fully composed fixture file.

    Attributes:
        path: File name the document was loaded from, relative to the fixtures directory.
        fixtures: Named fixture records in document order.
        depends: Files whose fixtures must be materialized first, in order.
    """

    model_config = ConfigDict(frozen=True)

    path: str
    fixtures: Dict[str, FixtureDefinition] = Field(default_factory=dict)
    depends: List[str] = Field(default_factory=list)


class LifecyclePhase(str, Enum):
    """Processing phase of a fixture within one run."""

    PENDING = "pending"
    CREATED = "created"
    UPDATED = "updated"


@dataclass
class ProcessingEntry:
    """Per-run state for one named fixture.

    Attributes:
        name: Fixture name.
        fixture: The read-only definition.
        deferred_fields: Field path -> referenced fixture name, patched in phase two.
        phase: Current lifecycle phase.
        entity: Entity handle once materialized.
    """

    name: str
    fixture: FixtureDefinition
    deferred_fields: Dict[str, str] = field(default_factory=dict)
    phase: LifecyclePhase = LifecyclePhase.PENDING
    entity: Optional[EntityHandle] = None

    def mark_created(self, entity: EntityHandle) -> None:
        """Record the materialized entity and move to ``created``.

        Args:
            entity: Handle returned by the entity API.

        Raises:
            RuntimeError: If the entry already left ``pending``.

        Examples:
            >>> entry = ProcessingEntry("a", FixtureDefinition(entity="x"))
            >>> entry.mark_created({"id": 1})
            >>> entry.phase.value, entry.entity
            ('created', {'id': 1})
        """
        if self.phase is not LifecyclePhase.PENDING:
            raise RuntimeError(f"Fixture '{self.name}' cannot move from {self.phase.value} to created")
        self.entity = entity
        self.phase = LifecyclePhase.CREATED

    def mark_updated(self, entity: Optional[EntityHandle] = None) -> None:
        """Move to ``updated`` after the deferred fields were patched.

        Args:
            entity: Refreshed handle, if the API returned one.

        Raises:
            RuntimeError: If the entry is not in ``created``.
        """
        if self.phase is not LifecyclePhase.CREATED:
            raise RuntimeError(f"Fixture '{self.name}' cannot move from {self.phase.value} to updated")
        if entity and "id" in entity:
            self.entity = entity
        self.phase = LifecyclePhase.UPDATED

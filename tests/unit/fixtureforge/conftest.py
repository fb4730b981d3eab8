# -*- coding: utf-8 -*-
"""Location: ./tests/unit/fixtureforge/conftest.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: fixtureforge contributors

Shared fixtures: a temporary fixtures directory and an in-memory entity API
that records every call.
"""

# Standard
from pathlib import Path
import textwrap
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

# Third-Party
import pytest
import yaml

# First-Party
from fixtureforge.errors import EntityNotFoundError
from fixtureforge.loader import FixtureLoader
from fixtureforge.models import FixtureDefinition
from fixtureforge.processing import DataProcessor


class RecordingEntityAPI:
    """In-memory ``EntityAPI`` that assigns ids and records every call.

    Attributes:
        calls: ``(operation, entity_kind, *args)`` in call order.
        entities: Stored entities by id.
        existing: Entities ``find`` can return, by entity kind.
        failures: ``(operation, entity_kind)`` -> exception to raise.
    """

    def __init__(self):
        self.calls: List[Tuple[Any, ...]] = []
        self.entities: Dict[Any, Dict[str, Any]] = {}
        self.existing: Dict[str, List[Dict[str, Any]]] = {}
        self.failures: Dict[Tuple[str, str], Exception] = {}
        self._next_id = 1

    def _check(self, operation: str, entity_kind: str) -> None:
        failure = self.failures.get((operation, entity_kind))
        if failure is not None:
            raise failure

    def calls_for(self, operation: str) -> List[Tuple[Any, ...]]:
        return [call for call in self.calls if call[0] == operation]

    async def create(self, entity_kind: str, data: Any) -> Dict[str, Any]:
        self.calls.append(("create", entity_kind, data))
        self._check("create", entity_kind)
        entity_id = f"{entity_kind}-{self._next_id}"
        self._next_id += 1
        entity = {**(data if isinstance(data, dict) else {}), "id": entity_id}
        self.entities[entity_id] = entity
        return dict(entity)

    async def find(self, entity_kind: str, criteria: Any) -> Dict[str, Any]:
        self.calls.append(("find", entity_kind, criteria))
        self._check("find", entity_kind)
        for candidate in self.existing.get(entity_kind, []):
            if all(candidate.get(key) == value for key, value in (criteria or {}).items()):
                self.entities.setdefault(candidate["id"], dict(candidate))
                return dict(candidate)
        raise EntityNotFoundError(entity_kind, criteria)

    async def update(self, entity_kind: str, entity_id: Any, data: Any) -> Dict[str, Any]:
        self.calls.append(("update", entity_kind, entity_id, data))
        self._check("update", entity_kind)
        entity = self.entities.setdefault(entity_id, {"id": entity_id})
        entity.update(data)
        return dict(entity)

    async def delete(self, entity_kind: str, entity_id: Any) -> None:
        self.calls.append(("delete", entity_kind, entity_id))
        self._check("delete", entity_kind)
        self.entities.pop(entity_id, None)


@pytest.fixture
def fixtures_dir(tmp_path: Path) -> Path:
    path = tmp_path / "fixtures"
    path.mkdir()
    return path


@pytest.fixture
def write_fixture(fixtures_dir: Path) -> Callable[[str, Union[str, Dict[str, Any]]], Path]:
    """Write a fixture file; strings are dedented YAML, mappings are dumped."""

    def write(name: str, content: Union[str, Dict[str, Any]]) -> Path:
        path = fixtures_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            path.write_text(textwrap.dedent(content), encoding="utf-8")
        else:
            path.write_text(yaml.safe_dump(content, sort_keys=False), encoding="utf-8")
        return path

    return write


@pytest.fixture
def loader(fixtures_dir: Path) -> FixtureLoader:
    return FixtureLoader(str(fixtures_dir))


@pytest.fixture
def entity_api() -> RecordingEntityAPI:
    return RecordingEntityAPI()


@pytest.fixture
def data_processor() -> DataProcessor:
    return DataProcessor(seed=1234)


def fixture_map(raw: Optional[Dict[str, Dict[str, Any]]] = None) -> Dict[str, Any]:
    """Validate a raw fixture map into ``FixtureDefinition`` objects."""
    return {name: FixtureDefinition.model_validate(record) for name, record in (raw or {}).items()}


@pytest.fixture
def make_fixtures() -> Callable[[Dict[str, Dict[str, Any]]], Dict[str, Any]]:
    return fixture_map

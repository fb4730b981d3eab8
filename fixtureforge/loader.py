# -*- coding: utf-8 -*-
"""Location: ./fixtureforge/loader.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: fixtureforge contributors

YAML fixture loader.

Reads fixture files and composes their file-level directives into one
effective document:

- ``@includes`` (or ``@include``): other files whose fixtures form the base
  layer, merged in listed order. The including file's own fixtures are
  layered on top; a fixture defined on both layers keeps the top layer's
  fields and deep-merges ``data``.
- ``@depends``: files to materialize before this one. The loader only
  collects them, propagating an included file's prerequisites up to the
  including file. Ordering and materialization are the processor's job.

A fixture file looks like::

    '@depends': customers.yml
    '@includes':
      - base_orders.yml
    fixtures:
      order_1:
        entity: order
        data:
          customerId: "@customer"

Files without a ``fixtures`` key are read as a bare fixture map.
"""

# Standard
from dataclasses import dataclass, field
import logging
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

# Third-Party
from pydantic import ValidationError
import yaml

# First-Party
from fixtureforge.document import deep_merge
from fixtureforge.errors import CircularIncludeError, CompositionError, FixtureFileNotFoundError, InvalidDirectiveError, InvalidFixtureError
from fixtureforge.models import FixtureDefinition, FixtureDocument

logger = logging.getLogger(__name__)

INCLUDES_DIRECTIVES: Tuple[str, ...] = ("@includes", "@include")
DEPENDS_DIRECTIVE = "@depends"
FIXTURES_KEY = "fixtures"


@dataclass
class _ComposedFile:
    """Raw, merged fixture records of one file plus its effective prerequisites."""

    fixtures: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    depends: List[str] = field(default_factory=list)


def merge_depends(current: Iterable[str], included: Iterable[str]) -> List[str]:
    """Union two ``@depends`` lists, keeping first-seen order.

    Args:
        current: Prerequisites of the including file.
        included: Prerequisites of an included file.

    Returns:
        List[str]: De-duplicated prerequisites.

    Examples:
        >>> merge_depends(["a.yml", "b.yml"], ["b.yml", "c.yml"])
        ['a.yml', 'b.yml', 'c.yml']
    """
    merged: List[str] = []
    for name in [*current, *included]:
        if name not in merged:
            merged.append(name)
    return merged


def merge_fixture_records(base: Dict[str, Any], top: Dict[str, Any]) -> Dict[str, Any]:
    """Override one fixture record with another of the same name.

    Top-level fields of ``top`` win; ``data`` mappings are deep-merged.

    Examples:
        >>> merge_fixture_records({"entity": "f", "data": {"a": 1, "b": 2}}, {"data": {"b": 3, "c": 4}})
        {'entity': 'f', 'data': {'a': 1, 'b': 3, 'c': 4}}
    """
    merged = {**base, **top}
    if isinstance(base.get("data"), dict) and isinstance(top.get("data"), dict):
        merged["data"] = deep_merge(base["data"], top["data"])
    return merged


def merge_fixture_maps(base: Dict[str, Dict[str, Any]], top: Dict[str, Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """Layer one fixture map over another.

    Fixtures only in ``base`` keep their position, overridden ones keep the
    base position, new ones are appended in ``top`` order.

    Examples:
        >>> merge_fixture_maps({"x": {"entity": "a"}}, {"y": {"entity": "b"}})
        {'x': {'entity': 'a'}, 'y': {'entity': 'b'}}
    """
    merged = dict(base)
    for name, record in top.items():
        merged[name] = merge_fixture_records(base[name], record) if name in base else record
    return merged


def _directive_files(raw: Dict[str, Any], key: str, filename: str) -> List[str]:
    """Normalize a directive value to a list of file names.

    Raises:
        InvalidDirectiveError: If the value is neither a string nor a list of strings.
    """
    value = raw.get(key)
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        if any(not isinstance(item, str) for item in value):
            raise InvalidDirectiveError(f"{key} directive array must contain only strings in {filename}", filename)
        return list(value)
    raise InvalidDirectiveError(f"{key} directive must be a string or array of strings, got {type(value).__name__} in {filename}", filename)


class FixtureLoader:
    """Load and compose YAML fixture files from one directory.

    Composed documents are cached per file name; loading the same file twice
    returns the identical document.

    Examples:
        >>> loader = FixtureLoader("/tmp")
        >>> loader.fixtures_dir.is_absolute()
        True
    """

    def __init__(self, fixtures_dir: str = "fixtures/yaml"):
        """Initialize the loader.

        Args:
            fixtures_dir: Directory that fixture file names are relative to.
        """
        self.fixtures_dir = Path(fixtures_dir).resolve()
        self._composed: Dict[str, _ComposedFile] = {}
        self._documents: Dict[str, FixtureDocument] = {}

    def resolve(self, filename: str) -> Path:
        """Return the absolute path of a fixture file."""
        return self.fixtures_dir / filename

    def read(self, filename: str, referenced_from: Optional[str] = None) -> Dict[str, Any]:
        """Parse one fixture file without applying any directive.

        Args:
            filename: File name relative to the fixtures directory.
            referenced_from: File whose directive named this one, for error messages.

        Returns:
            Dict[str, Any]: The parsed mapping (empty for an empty file).

        Raises:
            FixtureFileNotFoundError: If the file does not exist.
            CompositionError: If the YAML is malformed or not a mapping.
        """
        path = self.resolve(filename)
        if not path.is_file():
            raise FixtureFileNotFoundError(str(path), referenced_from)

        logger.debug("Reading fixture file %s", path)
        try:
            with open(path, encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise CompositionError(f"Failed to parse YAML fixture file {filename}: {exc}", filename) from exc

        if raw is None:
            return {}
        if not isinstance(raw, dict):
            raise CompositionError(f"Fixture file {filename} must contain a mapping, got {type(raw).__name__}", filename)
        return raw

    def load(self, filename: str) -> FixtureDocument:
        """Load a fixture file with all of its includes applied.

        Args:
            filename: File name relative to the fixtures directory.

        Returns:
            FixtureDocument: The composed, validated document.

        Raises:
            CompositionError: On missing files, bad directives, include cycles or invalid records.
        """
        document = self._documents.get(filename)
        if document is not None:
            return document

        composed = self._compose(filename, frozenset())
        fixtures: Dict[str, FixtureDefinition] = {}
        for name, record in composed.fixtures.items():
            try:
                fixtures[str(name)] = FixtureDefinition.model_validate(record)
            except ValidationError as exc:
                raise InvalidFixtureError(str(name), filename, str(exc)) from exc

        document = FixtureDocument(path=filename, fixtures=fixtures, depends=composed.depends)
        self._documents[filename] = document
        logger.debug("Loaded %s: %d fixtures, depends on %s", filename, len(fixtures), document.depends or "nothing")
        return document

    def _compose(self, filename: str, chain: FrozenSet[str], referenced_from: Optional[str] = None) -> _ComposedFile:
        """Merge a file over its includes.

        Args:
            filename: File to compose.
            chain: Files currently being composed above this one.
            referenced_from: Including file, for error messages.

        Returns:
            _ComposedFile: Merged records and effective prerequisites.

        Raises:
            CircularIncludeError: If an include re-enters the current chain.
        """
        cached = self._composed.get(filename)
        if cached is not None:
            return cached

        raw = self.read(filename, referenced_from)
        chain = chain | {filename}

        includes: List[str] = []
        for key in INCLUDES_DIRECTIVES:
            includes.extend(_directive_files(raw, key, filename))
        depends = merge_depends(_directive_files(raw, DEPENDS_DIRECTIVE, filename), [])

        fixtures: Dict[str, Dict[str, Any]] = {}
        for include in includes:
            if include in chain:
                raise CircularIncludeError(include, filename)
            included = self._compose(include, chain, filename)
            fixtures = merge_fixture_maps(fixtures, included.fixtures)
            depends = merge_depends(depends, included.depends)

        fixtures = merge_fixture_maps(fixtures, self._own_fixtures(raw, filename))
        composed = _ComposedFile(fixtures=fixtures, depends=depends)
        self._composed[filename] = composed
        return composed

    @staticmethod
    def _own_fixtures(raw: Dict[str, Any], filename: str) -> Dict[str, Dict[str, Any]]:
        """Extract the fixture records declared directly in a file.

        Raises:
            CompositionError: If the fixtures section is not a mapping.
            InvalidFixtureError: If a record is not a mapping.
        """
        if FIXTURES_KEY in raw:
            section = raw[FIXTURES_KEY] or {}
        else:
            section = {key: value for key, value in raw.items() if not str(key).startswith("@")}

        if not isinstance(section, dict):
            raise CompositionError(f"'{FIXTURES_KEY}' in {filename} must be a mapping, got {type(section).__name__}", filename)

        for name, record in section.items():
            if not isinstance(record, dict):
                raise InvalidFixtureError(str(name), filename, "fixture record must be a mapping")
        return section

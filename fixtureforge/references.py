# -*- coding: utf-8 -*-
"""Location: ./fixtureforge/references.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: fixtureforge contributors

Reference graph analysis.

Every ``@name`` token inside a fixture's ``data`` is an edge from that
fixture to ``name``. An edge is deferred when the target can reach the source
again through other references: creating either entity first would need the
other one to exist already, so the field is left out of the create call and
patched once every entity exists. All other references are immediate and get
substituted at create time.

Examples:
    >>> from fixtureforge.models import FixtureDefinition
    >>> fixtures = {
    ...     "a": FixtureDefinition(entity="user", data={"friend": "@b"}),
    ...     "b": FixtureDefinition(entity="user", data={"friend": "@a"}),
    ...     "c": FixtureDefinition(entity="user", data={"friend": "@a"}),
    ... }
    >>> classify(fixtures)
    {'a': {'friend': 'b'}, 'b': {'friend': 'a'}, 'c': {}}
"""

# Standard
import logging
from typing import Dict, List, Mapping, Tuple

# Third-Party
import networkx as nx

# First-Party
from fixtureforge.document import iter_references
from fixtureforge.models import FixtureDefinition

logger = logging.getLogger(__name__)


class ReferenceGraph:
    """Direct references between the fixtures of one plan.

    Only references to fixtures present in the map are edges; tokens naming
    anything else are resolved later from the reference map or left as-is.
    """

    def __init__(self, fixtures: Mapping[str, FixtureDefinition]):
        """Build the graph.

        Args:
            fixtures: Named fixture definitions.
        """
        self._candidates: Dict[str, List[Tuple[str, str]]] = {}
        self.graph = nx.DiGraph()
        self.graph.add_nodes_from(fixtures)

        for name, fixture in fixtures.items():
            candidates = [(path, target) for path, target in iter_references(fixture.data) if target in fixtures]
            self._candidates[name] = candidates
            self.graph.add_edges_from((name, target) for _, target in candidates)

    def dependencies(self, name: str) -> List[str]:
        """Return the fixtures ``name`` references directly, in first-seen order."""
        if name not in self.graph:
            return []
        return list(self.graph.successors(name))

    def references(self, name: str) -> List[Tuple[str, str]]:
        """Return ``(field_path, target)`` for every in-plan reference of ``name``."""
        return list(self._candidates.get(name, []))

    def reaches(self, start: str, target: str) -> bool:
        """Tell whether ``target`` is reachable from ``start``.

        Every call runs a fresh search, so shared dependencies (diamonds) are
        never mistaken for cycles.

        Args:
            start: Fixture to walk from.
            target: Fixture to look for.

        Returns:
            bool: True if some chain of references leads from ``start`` to ``target``.
        """
        if start == target:
            return True
        if start not in self.graph or target not in self.graph:
            return False
        return nx.has_path(self.graph, start, target)

    def creates_cycle(self, source: str, target: str) -> bool:
        """Tell whether the edge ``source -> target`` closes a cycle."""
        return self.reaches(target, source)

    def deferred_fields(self, name: str) -> Dict[str, str]:
        """Return the field paths of ``name`` whose references close a cycle.

        Args:
            name: Fixture name.

        Returns:
            Dict[str, str]: Field path -> referenced fixture name.
        """
        deferred: Dict[str, str] = {}
        for path, target in self._candidates.get(name, []):
            if path not in deferred and self.creates_cycle(name, target):
                deferred[path] = target
        if deferred:
            logger.debug("Fixture %s defers %s", name, ", ".join(f"{path} -> @{target}" for path, target in deferred.items()))
        return deferred

    def classify(self) -> Dict[str, Dict[str, str]]:
        """Return the deferred fields of every fixture in the graph."""
        return {name: self.deferred_fields(name) for name in self.graph}


def classify(fixtures: Mapping[str, FixtureDefinition]) -> Dict[str, Dict[str, str]]:
    """Compute deferred fields for a fixture map.

    Args:
        fixtures: Named fixture definitions.

    Returns:
        Dict[str, Dict[str, str]]: Fixture name -> (field path -> referenced fixture name).
    """
    return ReferenceGraph(fixtures).classify()

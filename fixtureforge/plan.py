# -*- coding: utf-8 -*-
"""Location: ./fixtureforge/plan.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: fixtureforge contributors

Processing plan builder.

Turns a composed fixture map into the ordered list of ``ProcessingEntry``
objects the materialization engine walks:

1. nested ``children`` are flattened right after their parent,
2. repeat keys such as ``partner_{1...3}`` expand into ``partner_1``,
   ``partner_2`` and ``partner_3``, each with its own copy of ``data``,
3. every entry receives its deferred fields from the reference graph.

Entries keep document order. Deferred fields take every cyclic reference out
of the create calls, so the plan is not sorted topologically.
"""

# Standard
import logging
import re
from typing import Dict, List, Mapping

# First-Party
from fixtureforge.document import clone
from fixtureforge.models import FixtureDefinition, ProcessingEntry
from fixtureforge.references import ReferenceGraph

logger = logging.getLogger(__name__)

REPEAT_PATTERN = re.compile(r"^(.+)_\{(\d+)\.\.\.(\d+)\}$")


def expand_repeats(fixtures: Mapping[str, FixtureDefinition]) -> Dict[str, FixtureDefinition]:
    """Expand repeat keys into individually named fixtures.

    Args:
        fixtures: Named fixture definitions.

    Returns:
        Dict[str, FixtureDefinition]: Fixtures with every ``<base>_{<start>...<end>}``
        key replaced by ``<base>_<start>`` .. ``<base>_<end>`` (inclusive).

    Examples:
        >>> template = FixtureDefinition(entity="partner", data={"name": "P"})
        >>> list(expand_repeats({"partner_{1...3}": template, "other": template}))
        ['partner_1', 'partner_2', 'partner_3', 'other']
    """
    expanded: Dict[str, FixtureDefinition] = {}
    for key, fixture in fixtures.items():
        match = REPEAT_PATTERN.match(key)
        if not match:
            expanded[key] = fixture
            continue

        base, start, end = match.group(1), int(match.group(2)), int(match.group(3))
        for index in range(start, end + 1):
            expanded[f"{base}_{index}"] = fixture.model_copy(update={"data": clone(fixture.data), "query": clone(fixture.query)})
    return expanded


def flatten_children(fixtures: Mapping[str, FixtureDefinition]) -> Dict[str, FixtureDefinition]:
    """Lift nested ``children`` fixtures into the top-level map.

    Examples:
        >>> child = FixtureDefinition(entity="address")
        >>> parent = FixtureDefinition(entity="customer", children={"home": child})
        >>> list(flatten_children({"customer": parent}))
        ['customer', 'home']
    """
    flat: Dict[str, FixtureDefinition] = {}
    for name, fixture in fixtures.items():
        flat[name] = fixture
        if fixture.children:
            flat.update(flatten_children(fixture.children))
    return flat


def build_plan(fixtures: Mapping[str, FixtureDefinition]) -> List[ProcessingEntry]:
    """Build the ordered processing plan for one fixture map.

    Args:
        fixtures: Named fixture definitions of one composed document.

    Returns:
        List[ProcessingEntry]: One pending entry per fixture, with deferred fields set.

    Examples:
        >>> plan = build_plan({
        ...     "a": FixtureDefinition(entity="user", data={"friend": "@b"}),
        ...     "b": FixtureDefinition(entity="user", data={"friend": "@a"}),
        ... })
        >>> [(entry.name, entry.deferred_fields) for entry in plan]
        [('a', {'friend': 'b'}), ('b', {'friend': 'a'})]
    """
    expanded = expand_repeats(flatten_children(fixtures))
    graph = ReferenceGraph(expanded)
    position = {name: index for index, name in enumerate(expanded)}

    plan: List[ProcessingEntry] = []
    for name, fixture in expanded.items():
        deferred = graph.deferred_fields(name)
        for path, target in graph.references(name):
            if path not in deferred and position[target] > position[name]:
                logger.warning("Fixture %s references @%s in '%s' but %s is created later in the plan", name, target, path, target)
        plan.append(ProcessingEntry(name=name, fixture=fixture, deferred_fields=deferred))
    return plan

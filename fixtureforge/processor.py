# -*- coding: utf-8 -*-
"""Location: ./fixtureforge/processor.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: fixtureforge contributors

Fixture processor.

Top-level orchestration over one or more fixture files: file-level
``@depends`` ordering, composition, planning and materialization.

Examples:
    >>> from fixtureforge.loader import FixtureLoader
    >>> processor = FixtureProcessor(FixtureLoader("/tmp"), entity_api=None)
    >>> processor.materialized_files
    []
"""

# Standard
import logging
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Union

# First-Party
from fixtureforge.engine import MaterializationEngine
from fixtureforge.entities import EntityAPI
from fixtureforge.errors import CircularDependencyError
from fixtureforge.loader import FixtureLoader
from fixtureforge.models import EntityHandle, ProcessingEntry
from fixtureforge.plan import build_plan
from fixtureforge.processing import DataProcessor

logger = logging.getLogger(__name__)

FileNames = Union[str, Iterable[str]]


def _as_list(filenames: FileNames) -> List[str]:
    return [filenames] if isinstance(filenames, str) else list(filenames)


class FixtureProcessor:
    """Load, plan and materialize fixture files with their prerequisites.

    A file is materialized at most once per processor: requesting it again,
    directly or as a prerequisite, returns the results of the first run.
    """

    def __init__(
        self,
        loader: FixtureLoader,
        entity_api: EntityAPI,
        data_processor: Optional[DataProcessor] = None,
    ):
        """Initialize the processor.

        Args:
            loader: Loader bound to the fixtures directory.
            entity_api: Remote entity operations.
            data_processor: Data processor shared by every file.
        """
        self.loader = loader
        self.engine = MaterializationEngine(entity_api, data_processor or DataProcessor())
        self._results: Dict[str, Dict[str, EntityHandle]] = {}

    @property
    def materialized_files(self) -> List[str]:
        """Files materialized by this processor, in order."""
        return list(self._results)

    def resolve_load_order(self, filenames: FileNames) -> List[str]:
        """Order files so every ``@depends`` prerequisite comes first.

        Args:
            filenames: Requested file name(s).

        Returns:
            List[str]: Every file to materialize, each once, prerequisites first.

        Raises:
            CircularDependencyError: If ``@depends`` chains loop back on themselves.
            CompositionError: If any file fails to compose.
        """
        order: List[str] = []

        def visit(filename: str, chain: FrozenSet[str]) -> None:
            if filename in order:
                return
            document = self.loader.load(filename)
            for dependency in document.depends:
                if dependency in chain:
                    raise CircularDependencyError(dependency, filename)
                visit(dependency, chain | {dependency})
            order.append(filename)

        for filename in _as_list(filenames):
            visit(filename, frozenset({filename}))
        return order

    def plan_fixtures(self, filenames: FileNames) -> Dict[str, List[ProcessingEntry]]:
        """Compose and plan files without touching the entity API.

        Args:
            filenames: Requested file name(s).

        Returns:
            Dict[str, List[ProcessingEntry]]: File name -> processing plan, in load order.
        """
        return {filename: build_plan(self.loader.load(filename).fixtures) for filename in self.resolve_load_order(filenames)}

    async def process_fixtures(
        self,
        filenames: FileNames,
        system_data: Optional[Mapping[str, Any]] = None,
        context_data: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, EntityHandle]:
        """Materialize files and their prerequisites.

        Every file is composed and planned before the first API call, so a
        broken file aborts the run without side effects.

        Args:
            filenames: Requested file name(s).
            system_data: Values seeded into the reference map.
            context_data: Values exposed as ``{context.*}`` placeholders.

        Returns:
            Dict[str, EntityHandle]: Fixture name -> entity, merged across files (later files win).
        """
        plans = self.plan_fixtures(filenames)

        results: Dict[str, EntityHandle] = {}
        for filename, plan in plans.items():
            if filename in self._results:
                logger.info("Fixture file %s already materialized, reusing %d entities", filename, len(self._results[filename]))
            else:
                logger.info("Materializing %s (%d fixtures)", filename, len(plan))
                self._results[filename] = await self.engine.run(plan, system_data, context_data=context_data)
            results.update(self._results[filename])
        return results

    async def cleanup(self) -> None:
        """Delete every entity this processor created, newest first."""
        await self.engine.cleanup()
        self._results.clear()

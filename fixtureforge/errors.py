# -*- coding: utf-8 -*-
"""Location: ./fixtureforge/errors.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: fixtureforge contributors

Exception hierarchy for fixture loading and materialization.

Composition errors are raised while fixture files are read and merged, before
any request reaches the entity API. Entity API errors are raised by the
entity-management collaborator and propagate through the materialization
engine unchanged.

Examples:
    >>> err = CircularIncludeError("b.yml", "a.yml")
    >>> isinstance(err, CompositionError)
    True
    >>> str(err)
    'Circular include detected: b.yml is already being processed in the chain starting from a.yml'
"""

# Standard
from typing import Any, Dict, Optional

# Third-Party
import orjson


class FixtureError(Exception):
    """Base class for every fixtureforge error.

    Examples:
        >>> str(FixtureError("boom"))
        'boom'
    """


class CompositionError(FixtureError):
    """Raised when fixture files cannot be read or merged.

    Attributes:
        path: The fixture file the error was detected in, when known.
    """

    def __init__(self, message: str, path: Optional[str] = None):
        """Initialize a composition error.

        Args:
            message: Human readable description.
            path: Offending fixture file, if any.
        """
        self.path = path
        super().__init__(message)


class FixtureFileNotFoundError(CompositionError):
    """Raised when a fixture file referenced by name does not exist.

    Examples:
        >>> str(FixtureFileNotFoundError("/tmp/missing.yml"))
        'Fixture file not found: /tmp/missing.yml'
    """

    def __init__(self, path: str, included_from: Optional[str] = None):
        """Initialize the error.

        Args:
            path: Resolved path of the missing file.
            included_from: File whose directive referenced the missing one.
        """
        message = f"Fixture file not found: {path}"
        if included_from:
            message += f" (referenced from {included_from})"
        super().__init__(message, path)


class InvalidDirectiveError(CompositionError):
    """Raised when a ``@includes``/``@depends`` directive has the wrong shape."""


class InvalidFixtureError(CompositionError):
    """Raised when a fixture record cannot be turned into a definition."""

    def __init__(self, name: str, path: str, reason: str):
        """Initialize the error.

        Args:
            name: Fixture name.
            path: File the fixture was composed from.
            reason: Validation failure detail.
        """
        self.fixture_name = name
        super().__init__(f"Invalid fixture '{name}' in {path}: {reason}", path)


class CircularIncludeError(CompositionError):
    """Raised when a file re-enters its own ``@includes`` chain."""

    def __init__(self, path: str, chain_start: str):
        """Initialize the error.

        Args:
            path: File that was encountered a second time.
            chain_start: File whose directive closed the cycle.
        """
        self.chain_start = chain_start
        super().__init__(f"Circular include detected: {path} is already being processed in the chain starting from {chain_start}", path)


class CircularDependencyError(CompositionError):
    """Raised when a file re-enters its own ``@depends`` chain."""

    def __init__(self, path: str, chain_start: str):
        """Initialize the error.

        Args:
            path: File that was encountered a second time.
            chain_start: File whose directive closed the cycle.
        """
        self.chain_start = chain_start
        super().__init__(f"Circular dependency detected: {path} is already being processed in the chain starting from {chain_start}", path)


class FixtureIncludeError(CompositionError):
    """Raised when an entity-level ``@include`` cannot be resolved.

    Examples:
        >>> str(FixtureIncludeError("Fixture key 'x' not found for @include directive"))
        "Fixture key 'x' not found for @include directive"
    """


def _render(value: Any) -> str:
    """Render criteria or payloads compactly for error messages.

    Args:
        value: Any JSON-like value.

    Returns:
        str: JSON text, or ``repr`` when the value is not serializable.

    Examples:
        >>> _render({"email": "a@b.c"})
        '{"email":"a@b.c"}'
    """
    try:
        return orjson.dumps(value).decode()
    except TypeError:
        return repr(value)


class EntityAPIError(FixtureError):
    """Base class for failures reported by the entity API.

    Attributes:
        entity_kind: Logical entity type of the failing call.
    """

    def __init__(self, message: str, entity_kind: str):
        """Initialize the error.

        Args:
            message: Human readable description.
            entity_kind: Entity type of the failing call.
        """
        self.entity_kind = entity_kind
        super().__init__(message)


class EntityNotFoundError(EntityAPIError):
    """Raised when a lookup for an existing entity matches nothing.

    Examples:
        >>> str(EntityNotFoundError("customer", {"email": "x@y.z"}))
        'No existing customer found matching criteria: {"email":"x@y.z"}'
    """

    def __init__(self, entity_kind: str, criteria: Dict[str, Any]):
        """Initialize the error.

        Args:
            entity_kind: Entity type searched.
            criteria: Processed lookup criteria.
        """
        self.criteria = criteria
        super().__init__(f"No existing {entity_kind} found matching criteria: {_render(criteria)}", entity_kind)


class EntityLookupError(EntityAPIError):
    """Raised when the lookup request itself fails."""

    def __init__(self, entity_kind: str, criteria: Dict[str, Any], detail: str):
        """Initialize the error.

        Args:
            entity_kind: Entity type searched.
            criteria: Processed lookup criteria.
            detail: Raw status/body of the failed response.
        """
        self.criteria = criteria
        self.detail = detail
        super().__init__(f"Failed to find existing {entity_kind} matching {_render(criteria)}: {detail}", entity_kind)


class EntityCreateError(EntityAPIError):
    """Raised when the API refuses to create an entity."""

    def __init__(self, entity_kind: str, detail: str):
        """Initialize the error.

        Args:
            entity_kind: Entity type being created.
            detail: Raw status/body of the failed response.
        """
        self.detail = detail
        super().__init__(f"Failed to create {entity_kind}: {detail}", entity_kind)


class EntityUpdateError(EntityAPIError):
    """Raised when the API refuses to update an entity."""

    def __init__(self, entity_kind: str, entity_id: Any, detail: str):
        """Initialize the error.

        Args:
            entity_kind: Entity type being updated.
            entity_id: Identifier of the entity.
            detail: Raw status/body of the failed response.
        """
        self.entity_id = entity_id
        self.detail = detail
        super().__init__(f"Failed to update {entity_kind} with ID {entity_id}: {detail}", entity_kind)


class EntityDeleteError(EntityAPIError):
    """Raised when the API refuses to delete an entity. Cleanup swallows it."""

    def __init__(self, entity_kind: str, entity_id: Any, detail: str):
        """Initialize the error.

        Args:
            entity_kind: Entity type being deleted.
            entity_id: Identifier of the entity.
            detail: Raw status/body of the failed response.
        """
        self.entity_id = entity_id
        self.detail = detail
        super().__init__(f"Failed to delete {entity_kind} with ID {entity_id}: {detail}", entity_kind)

# -*- coding: utf-8 -*-
"""Location: ./fixtureforge/entities.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: fixtureforge contributors

Entity management over the REST API.

``EntityAPI`` is the contract the materialization engine relies on;
``EntityService`` implements it with ``APIClient``:

- create: ``POST /<endpoint>`` with ``{"data": ...}``
- find:   ``GET /<endpoint>?filter[<key>]=<value>``, first item of ``data``
- update: ``PATCH /<endpoint>/<id>`` with ``{"data": ...}``
- delete: ``DELETE /<endpoint>/<id>``

Endpoints are derived from entity kinds by turning underscores into hyphens.
"""

# Standard
import logging
from typing import Any, Dict, Protocol
from urllib.parse import quote

# Third-Party
import httpx
import orjson

# First-Party
from fixtureforge.api_client import APIClient
from fixtureforge.errors import EntityCreateError, EntityDeleteError, EntityLookupError, EntityNotFoundError, EntityUpdateError
from fixtureforge.models import EntityHandle

logger = logging.getLogger(__name__)


def entity_endpoint(entity_kind: str) -> str:
    """Map an entity kind to its API path.

    Examples:
        >>> entity_endpoint("b2b_business_partner")
        'b2b-business-partner'
        >>> entity_endpoint("customer")
        'customer'
    """
    return entity_kind.replace("_", "-")


def filter_params(criteria: Any) -> Dict[str, str]:
    """Build ``filter[<key>]`` query parameters from lookup criteria.

    Null values are skipped; booleans are lower-cased and structured values
    JSON-encoded.

    Examples:
        >>> filter_params({"email": "a@b.c", "active": True, "deleted": None})
        {'filter[email]': 'a@b.c', 'filter[active]': 'true'}
    """
    if not isinstance(criteria, dict):
        return {}

    params: Dict[str, str] = {}
    for key, value in criteria.items():
        if value is None:
            continue
        if isinstance(value, bool):
            params[f"filter[{key}]"] = "true" if value else "false"
        elif isinstance(value, (dict, list)):
            params[f"filter[{key}]"] = orjson.dumps(value).decode()
        else:
            params[f"filter[{key}]"] = str(value)
    return params


def _detail(response: httpx.Response) -> str:
    return f"{response.status_code} {response.text}".strip()


def _transport_detail(exc: httpx.TransportError) -> str:
    """Describe a request that never got a response.

    Examples:
        >>> _transport_detail(httpx.ConnectError("connection refused"))
        'ConnectError: connection refused'
    """
    return f"{type(exc).__name__}: {exc}"


def _unwrap(body: Any) -> Any:
    """Return the ``data`` member of a JSON:API style body, or the body itself."""
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


class EntityAPI(Protocol):
    """Operations the materialization engine needs from the remote API."""

    async def create(self, entity_kind: str, data: Any) -> EntityHandle:
        """Create an entity and return its handle."""

    async def find(self, entity_kind: str, criteria: Any) -> EntityHandle:
        """Return the first entity matching ``criteria``."""

    async def update(self, entity_kind: str, entity_id: Any, data: Any) -> EntityHandle:
        """Patch an entity and return its refreshed handle."""

    async def delete(self, entity_kind: str, entity_id: Any) -> None:
        """Delete an entity."""


class EntityService:
    """``EntityAPI`` implementation backed by ``APIClient``."""

    def __init__(self, client: APIClient):
        """Initialize the service.

        Args:
            client: HTTP client bound to the API base URL.
        """
        self.client = client

    async def create(self, entity_kind: str, data: Any) -> EntityHandle:
        """Create an entity.

        Args:
            entity_kind: Logical entity type.
            data: Processed entity data.

        Returns:
            EntityHandle: The created entity; the sent data when the response has no JSON body.

        Raises:
            EntityCreateError: If the API does not answer with a success status or cannot be reached.
        """
        endpoint = entity_endpoint(entity_kind)
        try:
            response = await self.client.post(endpoint, json={"data": data})
        except httpx.TransportError as exc:
            raise EntityCreateError(entity_kind, _transport_detail(exc)) from exc
        if not response.is_success:
            raise EntityCreateError(entity_kind, _detail(response))

        try:
            entity = _unwrap(response.json())
        except ValueError:
            entity = None
        if not isinstance(entity, dict):
            logger.debug("Create %s returned no entity body; using submitted data", entity_kind)
            return data if isinstance(data, dict) else {}
        return entity

    async def find(self, entity_kind: str, criteria: Any) -> EntityHandle:
        """Find the first entity matching the criteria.

        Args:
            entity_kind: Logical entity type.
            criteria: Processed lookup criteria.

        Returns:
            EntityHandle: The first match.

        Raises:
            EntityLookupError: If the search request fails or the API cannot be reached.
            EntityNotFoundError: If nothing matches.
        """
        endpoint = entity_endpoint(entity_kind)
        try:
            response = await self.client.get(endpoint, params=filter_params(criteria))
        except httpx.TransportError as exc:
            raise EntityLookupError(entity_kind, criteria, _transport_detail(exc)) from exc
        if not response.is_success:
            raise EntityLookupError(entity_kind, criteria, _detail(response))

        try:
            items = _unwrap(response.json())
        except ValueError as exc:
            raise EntityLookupError(entity_kind, criteria, f"invalid JSON response: {exc}") from exc

        if isinstance(items, dict):
            items = [items]
        if not items:
            raise EntityNotFoundError(entity_kind, criteria)
        if len(items) > 1:
            logger.debug("Lookup of %s matched %d entities; using the first", entity_kind, len(items))
        return items[0]

    async def update(self, entity_kind: str, entity_id: Any, data: Any) -> EntityHandle:
        """Patch an entity.

        Args:
            entity_kind: Logical entity type.
            entity_id: Identifier of the entity.
            data: Fields to change.

        Returns:
            EntityHandle: The refreshed entity, or an empty mapping when the response has no body.

        Raises:
            EntityUpdateError: If the API does not answer with a success status or cannot be reached.
        """
        path = f"{entity_endpoint(entity_kind)}/{quote(str(entity_id), safe='')}"
        try:
            response = await self.client.patch(path, json={"data": data})
        except httpx.TransportError as exc:
            raise EntityUpdateError(entity_kind, entity_id, _transport_detail(exc)) from exc
        if not response.is_success:
            raise EntityUpdateError(entity_kind, entity_id, _detail(response))

        try:
            entity = _unwrap(response.json())
        except ValueError:
            return {}
        return entity if isinstance(entity, dict) else {}

    async def delete(self, entity_kind: str, entity_id: Any) -> None:
        """Delete an entity.

        Raises:
            EntityDeleteError: If the API does not answer with a success status or cannot be reached.
        """
        path = f"{entity_endpoint(entity_kind)}/{quote(str(entity_id), safe='')}"
        try:
            response = await self.client.delete(path)
        except httpx.TransportError as exc:
            raise EntityDeleteError(entity_kind, entity_id, _transport_detail(exc)) from exc
        if not response.is_success:
            raise EntityDeleteError(entity_kind, entity_id, _detail(response))

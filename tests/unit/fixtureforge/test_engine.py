# -*- coding: utf-8 -*-
"""Location: ./tests/unit/fixtureforge/test_engine.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: fixtureforge contributors

Tests for the two-phase materialization engine.
"""

# Standard
import logging
from unittest.mock import AsyncMock

# Third-Party
import pytest

# First-Party
from fixtureforge.document import iter_references
from fixtureforge.engine import LedgerEntry, MaterializationEngine
from fixtureforge.errors import EntityCreateError, EntityDeleteError, EntityNotFoundError
from fixtureforge.models import FixtureDefinition, LifecyclePhase, ProcessingEntry
from fixtureforge.plan import build_plan


@pytest.fixture
def engine(entity_api, data_processor):
    return MaterializationEngine(entity_api, data_processor)


# --------------------------------------------------------------------------- #
#                           Two-phase protocol                                #
# --------------------------------------------------------------------------- #
@pytest.mark.asyncio
async def test_mutual_references_are_created_then_patched(engine, entity_api, make_fixtures):
    plan = build_plan(
        make_fixtures(
            {
                "customer": {"entity": "customer", "data": {"name": "C", "primaryAddressId": "@address"}},
                "address": {"entity": "address", "data": {"street": "S", "customerId": "@customer"}},
            }
        )
    )

    results = await engine.run(plan)

    assert entity_api.calls == [
        ("create", "customer", {"name": "C"}),
        ("create", "address", {"street": "S"}),
        ("update", "customer", "customer-1", {"primaryAddressId": "address-2"}),
        ("update", "address", "address-2", {"customerId": "customer-1"}),
    ]
    assert results["customer"] == {"id": "customer-1", "name": "C", "primaryAddressId": "address-2"}
    assert results["address"]["customerId"] == "customer-1"
    assert all(entry.phase is LifecyclePhase.UPDATED for entry in plan)


@pytest.mark.asyncio
async def test_create_payloads_never_contain_plan_reference_tokens(engine, entity_api, make_fixtures):
    fixtures = make_fixtures(
        {
            "a": {"entity": "node", "data": {"next": "@b", "meta": {"owner": "@c"}}},
            "b": {"entity": "node", "data": {"next": "@c"}},
            "c": {"entity": "node", "data": {"next": "@a", "self": "@c"}},
        }
    )

    await engine.run(build_plan(fixtures))

    for _, _, payload in entity_api.calls_for("create"):
        assert [name for _, name in iter_references(payload) if name in fixtures] == []


@pytest.mark.asyncio
async def test_immediate_reference_uses_created_id(engine, entity_api, make_fixtures):
    plan = build_plan(
        make_fixtures(
            {
                "customer": {"entity": "customer", "data": {"name": "C"}},
                "order": {"entity": "sales_order", "data": {"customerId": "@customer", "lines": [{"product": "@missing"}]}},
            }
        )
    )

    results = await engine.run(plan)

    assert entity_api.calls_for("create")[1] == ("create", "sales_order", {"customerId": "customer-1", "lines": [{"product": "@missing"}]})
    assert entity_api.calls_for("update") == []
    assert results["order"]["id"] == "sales_order-2"
    assert [entry.phase for entry in plan] == [LifecyclePhase.CREATED, LifecyclePhase.CREATED]


@pytest.mark.asyncio
async def test_customer_order_chain_needs_no_patch(engine, entity_api, make_fixtures):
    plan = build_plan(
        make_fixtures(
            {
                "customer": {"entity": "customer", "data": {"name": "A"}},
                "order": {"entity": "order", "data": {"customerRef": "@customer"}},
            }
        )
    )

    await engine.run(plan)

    assert entity_api.calls == [
        ("create", "customer", {"name": "A"}),
        ("create", "order", {"customerRef": "customer-1"}),
    ]
    assert entity_api.calls_for("update") == []


@pytest.mark.asyncio
async def test_dotted_key_in_cycle_is_left_out_and_patched_verbatim(engine, entity_api, make_fixtures):
    plan = build_plan(
        make_fixtures(
            {
                "a": {"entity": "node", "data": {"meta.owner": "@b", "meta": {"owner": "kept"}}},
                "b": {"entity": "node", "data": {"owner": "@a"}},
            }
        )
    )

    await engine.run(plan)

    assert entity_api.calls == [
        ("create", "node", {"meta": {"owner": "kept"}}),
        ("create", "node", {}),
        ("update", "node", "node-1", {"meta.owner": "node-2"}),
        ("update", "node", "node-2", {"owner": "node-1"}),
    ]


@pytest.mark.asyncio
async def test_sequence_field_is_deferred_as_a_whole(engine, entity_api, make_fixtures):
    plan = build_plan(
        make_fixtures(
            {
                "group": {"entity": "group", "data": {"name": "G", "members": ["@user", "@admin"]}},
                "admin": {"entity": "user", "data": {"name": "A"}},
                "user": {"entity": "user", "data": {"name": "U", "groupId": "@group"}},
            }
        )
    )

    await engine.run(plan)

    assert entity_api.calls_for("create")[0] == ("create", "group", {"name": "G"})
    assert ("update", "group", "group-1", {"members": ["user-3", "admin-2"]}) in entity_api.calls


@pytest.mark.asyncio
async def test_nested_deferred_path_is_patched_as_nested_payload(engine, entity_api, make_fixtures):
    plan = build_plan(
        make_fixtures(
            {
                "a": {"entity": "employee", "data": {"profile": {"title": "T", "managerId": "@b"}}},
                "b": {"entity": "employee", "data": {"reportId": "@a"}},
            }
        )
    )

    await engine.run(plan)

    assert entity_api.calls_for("create")[0] == ("create", "employee", {"profile": {"title": "T"}})
    assert ("update", "employee", "employee-1", {"profile": {"managerId": "employee-2"}}) in entity_api.calls


@pytest.mark.asyncio
async def test_fixture_without_data_is_created_empty(engine, entity_api, make_fixtures):
    await engine.run(build_plan(make_fixtures({"blank": {"entity": "tag"}})))

    assert entity_api.calls == [("create", "tag", {})]


# --------------------------------------------------------------------------- #
#                              System data                                    #
# --------------------------------------------------------------------------- #
@pytest.mark.asyncio
async def test_system_data_seeds_reference_map(engine, entity_api, make_fixtures):
    plan = build_plan(make_fixtures({"user": {"entity": "user", "data": {"tenantId": "@tenant", "roles": "{roles}"}}}))

    await engine.run(plan, system_data={"tenant": "t-1", "roles": ["admin"]})

    assert entity_api.calls == [("create", "user", {"tenantId": "t-1", "roles": ["admin"]})]
    assert engine.references == {"tenant": "t-1", "roles": ["admin"], "user": "user-1"}


@pytest.mark.asyncio
async def test_entity_include_uses_plan_fixtures(engine, entity_api, make_fixtures):
    plan = build_plan(
        make_fixtures(
            {
                "template": {"entity": "address", "data": {"country": "IT", "city": "Rome"}},
                "home": {"entity": "address", "data": {"@include": "template", "city": "Milan"}},
            }
        )
    )

    await engine.run(plan)

    assert entity_api.calls_for("create")[1] == ("create", "address", {"country": "IT", "city": "Milan"})


@pytest.mark.asyncio
async def test_context_data_feeds_context_placeholders(engine, entity_api, make_fixtures):
    plan = build_plan(make_fixtures({"user": {"entity": "user", "data": {"email": "admin@{context.domain}"}}}))

    await engine.run(plan, context_data={"domain": "example.com"})

    assert entity_api.calls == [("create", "user", {"email": "admin@example.com"})]


# --------------------------------------------------------------------------- #
#                            Existing entities                                #
# --------------------------------------------------------------------------- #
@pytest.mark.asyncio
async def test_existing_fixture_is_looked_up_and_registered(engine, entity_api, make_fixtures):
    entity_api.existing["user"] = [{"id": "u-9", "email": "admin@example.com"}]
    plan = build_plan(
        make_fixtures(
            {
                "admin": {"entity": "user", "existing": True, "query": {"email": "admin@example.com"}},
                "post": {"entity": "post", "data": {"authorId": "@admin"}},
            }
        )
    )

    results = await engine.run(plan)

    assert entity_api.calls == [
        ("find", "user", {"email": "admin@example.com"}),
        ("create", "post", {"authorId": "u-9"}),
    ]
    assert results["admin"] == {"id": "u-9", "email": "admin@example.com"}
    assert engine.ledger[0] == LedgerEntry("admin", "user", "u-9")


@pytest.mark.asyncio
async def test_existing_fixture_with_data_is_updated(engine, entity_api, make_fixtures):
    entity_api.existing["user"] = [{"id": "u-9", "email": "admin@example.com"}]
    plan = build_plan(
        make_fixtures({"admin": {"entity": "user", "existing": True, "query": {"email": "admin@example.com"}, "data": {"role": "owner"}}})
    )

    results = await engine.run(plan)

    assert entity_api.calls == [
        ("find", "user", {"email": "admin@example.com"}),
        ("update", "user", "u-9", {"role": "owner"}),
    ]
    assert results["admin"]["role"] == "owner"
    assert plan[0].phase is LifecyclePhase.CREATED


@pytest.mark.asyncio
async def test_existing_fixture_falls_back_to_data_as_criteria(engine, entity_api, make_fixtures):
    entity_api.existing["currency"] = [{"id": "eur", "code": "EUR"}]
    plan = build_plan(make_fixtures({"euro": {"entity": "currency", "existing": True, "data": {"code": "EUR"}}}))

    await engine.run(plan)

    assert entity_api.calls_for("find") == [("find", "currency", {"code": "EUR"})]
    assert entity_api.calls_for("create") == []


@pytest.mark.asyncio
async def test_existing_fixture_not_found_is_fatal(engine, entity_api, make_fixtures):
    plan = build_plan(make_fixtures({"admin": {"entity": "user", "existing": True, "query": {"email": "ghost@example.com"}}}))

    with pytest.raises(EntityNotFoundError, match="No existing user found"):
        await engine.run(plan)

    assert entity_api.calls_for("create") == []


# --------------------------------------------------------------------------- #
#                              Failure paths                                  #
# --------------------------------------------------------------------------- #
@pytest.mark.asyncio
async def test_entity_without_id_is_a_create_error(engine, entity_api, make_fixtures):
    entity_api.create = AsyncMock(return_value={"name": "no id"})

    with pytest.raises(EntityCreateError, match="has no id"):
        await engine.run(build_plan(make_fixtures({"thing": {"entity": "thing", "data": {"name": "x"}}})))


@pytest.mark.asyncio
async def test_create_failure_propagates_and_keeps_ledger(engine, entity_api, make_fixtures):
    entity_api.failures[("create", "order")] = EntityCreateError("order", "500 boom")
    plan = build_plan(make_fixtures({"customer": {"entity": "customer"}, "order": {"entity": "order"}}))

    with pytest.raises(EntityCreateError, match="Failed to create order: 500 boom"):
        await engine.run(plan)

    assert engine.ledger == [LedgerEntry("customer", "customer", "customer-1")]
    assert plan[1].phase is LifecyclePhase.PENDING


@pytest.mark.asyncio
async def test_deferred_field_with_unresolved_target_is_skipped(engine, entity_api, caplog):
    entry = ProcessingEntry(
        name="orphan",
        fixture=FixtureDefinition(entity="node", data={"name": "n", "parentId": "@ghost"}),
        deferred_fields={"parentId": "ghost"},
    )

    with caplog.at_level(logging.DEBUG, logger="fixtureforge.engine"):
        await engine.run([entry])

    assert entity_api.calls == [("create", "node", {"name": "n"})]
    assert entry.phase is LifecyclePhase.CREATED
    assert "@ghost was not materialized" in caplog.text


# --------------------------------------------------------------------------- #
#                                 Cleanup                                     #
# --------------------------------------------------------------------------- #
@pytest.mark.asyncio
async def test_cleanup_deletes_in_reverse_and_swallows_failures(engine, entity_api, make_fixtures, caplog):
    entity_api.failures[("delete", "address")] = EntityDeleteError("address", "address-2", "404 gone")
    await engine.run(
        build_plan(
            make_fixtures(
                {
                    "customer": {"entity": "customer"},
                    "address": {"entity": "address"},
                    "order": {"entity": "order"},
                }
            )
        )
    )

    with caplog.at_level(logging.WARNING, logger="fixtureforge.engine"):
        await engine.cleanup()

    assert entity_api.calls_for("delete") == [
        ("delete", "order", "order-3"),
        ("delete", "address", "address-2"),
        ("delete", "customer", "customer-1"),
    ]
    assert "Failed to delete address" in caplog.text
    assert engine.ledger == []
    assert engine.references == {}


@pytest.mark.asyncio
async def test_cleanup_swallows_unexpected_exceptions(engine, entity_api, make_fixtures):
    entity_api.failures[("delete", "customer")] = RuntimeError("connection reset")
    await engine.run(build_plan(make_fixtures({"customer": {"entity": "customer"}})))

    await engine.cleanup()

    assert engine.ledger == []

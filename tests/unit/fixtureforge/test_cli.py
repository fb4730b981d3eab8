# -*- coding: utf-8 -*-
"""Location: ./tests/unit/fixtureforge/test_cli.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
Authors: fixtureforge contributors

Tests for the command line interface.
"""

# Standard
import functools
import json
from typing import List

# Third-Party
import httpx
import orjson
import pytest

# First-Party
from fixtureforge import cli
from fixtureforge.api_client import APIClient
from fixtureforge.config import get_settings
from fixtureforge.errors import FixtureError


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    for name in ("FIXTUREFORGE_BASE_URL", "FIXTUREFORGE_API_TOKEN", "FIXTUREFORGE_FIXTURES_DIR", "FIXTUREFORGE_MAX_RETRIES"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def api_requests(monkeypatch) -> List[httpx.Request]:
    """Route the CLI's HTTP client to an in-memory API and return the recorded requests."""
    requests: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.method == "POST":
            data = json.loads(request.content)["data"]
            return httpx.Response(201, json={"data": {**data, "id": f"id-{len(requests)}"}})
        if request.method == "PATCH":
            return httpx.Response(200, json={"data": {"id": request.url.path.rsplit("/", 1)[-1]}})
        return httpx.Response(204)

    monkeypatch.setattr(cli, "APIClient", functools.partial(APIClient, transport=httpx.MockTransport(handler)))
    return requests


@pytest.fixture
def shop(write_fixture):
    write_fixture("customers.yml", {"fixtures": {"customer": {"entity": "customer", "data": {"name": "C"}}}})
    write_fixture(
        "orders.yml",
        {"@depends": "customers.yml", "fixtures": {"order": {"entity": "sales_order", "data": {"customerId": "@customer", "tenantId": "@tenant"}}}},
    )


def test_dry_run_prints_plan_without_requests(fixtures_dir, shop, api_requests, capsys):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["orders.yml", "--fixtures-dir", str(fixtures_dir), "--dry-run"])

    output = capsys.readouterr().out
    assert exc_info.value.code == 0
    assert "DRY RUN" in output
    assert "customers.yml" in output
    assert "sales_order" in output
    assert api_requests == []


def test_run_writes_report_and_cleans_up(fixtures_dir, tmp_path, shop, api_requests, write_fixture):
    system_file = tmp_path / "system.yml"
    system_file.write_text("tenant: t-1\n", encoding="utf-8")
    report_file = tmp_path / "reports" / "run.json"

    with pytest.raises(SystemExit) as exc_info:
        cli.main(
            [
                "orders.yml",
                "--fixtures-dir",
                str(fixtures_dir),
                "--base-url",
                "http://api.test",
                "--token",
                "secret",
                "--system-data",
                str(system_file),
                "--report",
                str(report_file),
                "--cleanup",
            ]
        )

    assert exc_info.value.code == 0
    assert [request.method for request in api_requests] == ["POST", "POST", "DELETE", "DELETE"]
    assert json.loads(api_requests[1].content) == {"data": {"customerId": "id-1", "tenantId": "t-1"}}
    assert api_requests[0].headers["Authorization"] == "Bearer secret"
    assert api_requests[2].url.path == "/sales-order/id-2"

    report = orjson.loads(report_file.read_bytes())
    assert report["files"] == ["customers.yml", "orders.yml"]
    assert report["total_entities"] == 2
    assert report["cleaned_up"] is True
    assert report["entities"]["order"]["id"] == "id-2"
    assert report["client_stats"]["total_requests"] == 4


def test_missing_fixture_file_exits_with_error(fixtures_dir, api_requests, capsys):
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["nope.yml", "--fixtures-dir", str(fixtures_dir)])

    assert exc_info.value.code == 1
    assert "Fixture file not found" in capsys.readouterr().out
    assert api_requests == []


def test_settings_supply_defaults(fixtures_dir, shop, api_requests, monkeypatch):
    monkeypatch.setenv("FIXTUREFORGE_FIXTURES_DIR", str(fixtures_dir))

    with pytest.raises(SystemExit) as exc_info:
        cli.main(["customers.yml"])

    assert exc_info.value.code == 0
    assert [request.method for request in api_requests] == ["POST"]
    assert str(api_requests[0].url) == "http://localhost:8080/customer"


def test_load_system_data(tmp_path):
    assert cli.load_system_data(None) == {}

    empty = tmp_path / "empty.yml"
    empty.write_text("", encoding="utf-8")
    assert cli.load_system_data(str(empty)) == {}

    listing = tmp_path / "list.yml"
    listing.write_text("- a\n", encoding="utf-8")
    with pytest.raises(FixtureError, match="must contain a mapping"):
        cli.load_system_data(str(listing))

    with pytest.raises(FixtureError, match="not found"):
        cli.load_system_data(str(tmp_path / "missing.yml"))


def test_unreachable_api_exits_with_entity_error(fixtures_dir, shop, monkeypatch, capsys):
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    monkeypatch.setattr(cli, "APIClient", functools.partial(APIClient, transport=httpx.MockTransport(refuse)))

    with pytest.raises(SystemExit) as exc_info:
        cli.main(["customers.yml", "--fixtures-dir", str(fixtures_dir)])

    assert exc_info.value.code == 1
    assert "Failed to create customer" in capsys.readouterr().out

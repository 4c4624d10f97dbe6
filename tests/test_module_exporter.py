"""Tests for core.module_exporter and core.command_exporter."""

import json
import os
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from config import Module
from core.command_exporter import CommandModuleExporter
from core.errors import FetchError
from core.module_exporter import ExportedModulesLedger, ModuleExporter, personalize_project_uid
from stack_export_shared import read_json


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------

def test_ledger_is_ordered_and_deduplicated():
    ledger = ExportedModulesLedger()
    ledger.record(Module.STACK, [{"uid": "blt"}])
    ledger.record(Module.CONTENT_TYPES, [{"uid": "blog"}])
    ledger.record("content-types", [{"uid": "blog"}, {"uid": "author"}])

    assert ledger.modules == [Module.STACK, Module.CONTENT_TYPES]
    assert ledger.uids(Module.CONTENT_TYPES) == ["blog", "author"]
    assert ledger.count(Module.CONTENT_TYPES) == 2
    assert Module.STACK in ledger
    assert len(ledger) == 2
    assert ledger.as_dict()["stack"] == {"count": 1, "uids": ["blt"]}


def test_ledger_records_modules_without_items():
    ledger = ExportedModulesLedger()
    ledger.record(Module.ENTRIES, [])
    assert list(ledger) == [Module.ENTRIES]
    assert ledger.count(Module.ENTRIES) == 0


# ---------------------------------------------------------------------------
# ModuleExporter
# ---------------------------------------------------------------------------

@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def exporter(client, store):
    return ModuleExporter(client, store, page_limit=50)


def test_export_queried_module(exporter, client, store):
    client.iter_query.return_value = iter([{"uid": "blog"}])

    items = exporter.export_module(Module.CONTENT_TYPES, {"uid": {"$in": ["blog"]}})

    assert items == [{"uid": "blog"}]
    client.iter_query.assert_called_once_with(Module.CONTENT_TYPES, {"uid": {"$in": ["blog"]}}, limit=50)
    assert store.read_content_types() == [{"uid": "blog"}]
    assert exporter.ledger.uids(Module.CONTENT_TYPES) == ["blog"]


def test_export_stack_writes_document(exporter, client, store):
    client.fetch_stack.return_value = {"api_key": "blt_stack", "uid": "blt_stack"}
    exporter.export_module(Module.STACK)
    assert store.read_document(Module.STACK)["api_key"] == "blt_stack"
    assert Module.STACK in exporter.ledger


def test_export_entries_for_every_content_type(exporter, client, store):
    store.write_module(Module.CONTENT_TYPES, [{"uid": "blog"}, {"uid": "author"}])
    client.iter_entries.side_effect = [
        iter([{"uid": "e1", "locale": "en-us"}]),
        iter([{"uid": "e2", "locale": "en-us"}, {"uid": "e3", "locale": "fr-fr"}]),
    ]

    entries = exporter.export_module(Module.ENTRIES)

    assert [e["uid"] for e in entries] == ["e1", "e2", "e3"]
    content_types = [c.args[0] for c in client.iter_entries.call_args_list]
    assert content_types == ["blog", "author"]
    assert all(c.kwargs["locale"] is None for c in client.iter_entries.call_args_list)
    assert exporter.ledger.count(Module.ENTRIES) == 3


def test_export_entries_for_every_locale(exporter, client, store):
    store.write_module(Module.CONTENT_TYPES, [{"uid": "blog"}])
    store.write_module(Module.LOCALES, [
        {"uid": "loc_1", "code": "en-us", "name": "English"},
        {"uid": "loc_2", "code": "fr-fr", "name": "French"},
    ])
    client.iter_entries.side_effect = [
        iter([{"uid": "e1", "locale": "en-us", "title": "Hello"}]),
        iter([{"uid": "e1", "title": "Bonjour"}]),
    ]

    entries = exporter.export_module(Module.ENTRIES)

    assert len(entries) == 2
    locales = [c.kwargs["locale"] for c in client.iter_entries.call_args_list]
    assert sorted(locales) == ["en-us", "fr-fr"]
    ct_dir = os.path.join(store.entries_dir, "blog")
    assert read_json(os.path.join(ct_dir, "fr-fr.json"))["e1"]["title"] == "Bonjour"
    assert read_json(os.path.join(ct_dir, "en-us.json"))["e1"]["title"] == "Hello"
    assert exporter.ledger.count(Module.ENTRIES) == 1


def test_export_entries_without_content_types(exporter, client):
    assert exporter.export_module(Module.ENTRIES) == []
    client.iter_entries.assert_not_called()


def test_export_marketplace_apps_by_installation_uid(exporter, client, store):
    client.fetch_marketplace_installations.return_value = [{"uid": "inst_1", "app_uid": "app_1"}]

    items = exporter.export_module(Module.MARKETPLACE_APPS, {"installation_uid": {"$in": ["inst_1", "inst_2"]}})

    assert items == [{"uid": "inst_1", "app_uid": "app_1"}]
    client.fetch_marketplace_installations.assert_called_once_with(["inst_1", "inst_2"], limit=50)
    assert store.read_module(Module.MARKETPLACE_APPS) == items


def test_personalize_skipped_without_project(exporter, client, store):
    store.write_document(Module.STACK, {"api_key": "blt_stack", "settings": {}})
    assert exporter.export_module(Module.PERSONALIZE) == []
    assert Module.PERSONALIZE not in exporter.ledger


def test_personalize_exported_with_linked_project(exporter, store):
    store.write_document(Module.STACK, {"api_key": "blt_stack", "settings": {"linked_personalize_project": "proj_1"}})
    items = exporter.export_module(Module.PERSONALIZE)
    assert items == [{"uid": "proj_1", "stack_api_key": "blt_stack"}]
    assert store.read_document(Module.PERSONALIZE)["uid"] == "proj_1"


def test_personalize_project_uid():
    assert personalize_project_uid({}) is None
    assert personalize_project_uid({"linked_personalize_project": "p"}) == "p"


def test_fetch_error_propagates(exporter, client):
    client.iter_query.side_effect = FetchError("HTTP 401", module="locales", status_code=401)
    with pytest.raises(FetchError):
        exporter.export_module(Module.LOCALES)
    assert Module.LOCALES not in exporter.ledger


def test_merge_flag_accumulates(exporter, client, store):
    client.iter_query.side_effect = [iter([{"uid": "a"}]), iter([{"uid": "b"}])]
    exporter.export_module(Module.CONTENT_TYPES)
    exporter.export_module(Module.CONTENT_TYPES, {"uid": {"$in": ["b"]}}, merge=True)
    assert [ct["uid"] for ct in store.read_content_types()] == ["a", "b"]


def test_fetch_batch_records_without_writing(exporter, client, store):
    client.iter_query.return_value = iter([{"uid": "bltasset1"}])

    items = exporter.fetch_batch(Module.ASSETS, {"uid": {"$in": ["bltasset1"]}})

    assert items == [{"uid": "bltasset1"}]
    assert not os.path.exists(store.module_path(Module.ASSETS))
    assert exporter.ledger.uids(Module.ASSETS) == ["bltasset1"]


# ---------------------------------------------------------------------------
# CommandModuleExporter
# ---------------------------------------------------------------------------

@pytest.fixture
def command_config(export_config):
    return export_config.with_overrides(
        export_backend="command",
        management_token_alias="prod",
        branch_name="develop",
        secured_assets=True,
        external_config_path="./export-config.json",
    )


def test_build_command(command_config, store):
    exporter = CommandModuleExporter(command_config, store)

    cmd = exporter.build_command(Module.CONTENT_TYPES, {"uid": {"$in": ["blog"]}})

    assert cmd[:2] == ["csdx", "cm:stacks:export"]
    assert cmd[cmd.index("-k") + 1] == "blt_stack"
    assert cmd[cmd.index("-d") + 1] == command_config.export_dir
    assert cmd[cmd.index("--module") + 1] == "content-types"
    assert cmd[cmd.index("-a") + 1] == "prod"
    assert cmd[cmd.index("--branch") + 1] == "develop"
    assert json.loads(cmd[cmd.index("--query") + 1]) == {
        "modules": {"content-types": {"uid": {"$in": ["blog"]}}}
    }
    assert "--secured-assets" in cmd
    assert cmd[cmd.index("--config") + 1] == "./export-config.json"
    assert cmd[-1] == "-y"


def test_build_command_minimal(export_config, store):
    cmd = CommandModuleExporter(export_config, store).build_command(Module.LOCALES)
    for flag in ("-a", "--branch", "--query", "--secured-assets", "--config"):
        assert flag not in cmd


def test_command_export_reads_back_output(command_config, store):
    exporter = CommandModuleExporter(command_config, store)

    def fake_run(cmd, **kwargs):
        store.write_module(Module.EXTENSIONS, [{"uid": "ext_1"}])
        return subprocess.CompletedProcess(cmd, 0, "", "")

    with patch("core.command_exporter.subprocess.run", side_effect=fake_run) as run:
        items = exporter.export_module(Module.EXTENSIONS, {"uid": {"$in": ["ext_1"]}})

    assert items == [{"uid": "ext_1"}]
    assert run.call_args.kwargs["check"] is True
    assert exporter.ledger.uids(Module.EXTENSIONS) == ["ext_1"]


def test_command_failure_maps_to_fetch_error(command_config, store):
    exporter = CommandModuleExporter(command_config, store)
    error = subprocess.CalledProcessError(2, ["csdx"], output="", stderr="invalid alias")

    with patch("core.command_exporter.subprocess.run", side_effect=error):
        with pytest.raises(FetchError, match="invalid alias"):
            exporter.export_module(Module.LOCALES)


def test_command_not_found_maps_to_fetch_error(command_config, store):
    exporter = CommandModuleExporter(command_config, store)
    with patch("core.command_exporter.subprocess.run", side_effect=FileNotFoundError("csdx")):
        with pytest.raises(FetchError, match="not found"):
            exporter.export_module(Module.LOCALES)


def test_command_fetch_batch_runs_one_export(command_config, store):
    exporter = CommandModuleExporter(command_config, store)

    def fake_run(cmd, **kwargs):
        store.write_module(Module.ASSETS, [{"uid": "bltasset1"}])
        return subprocess.CompletedProcess(cmd, 0, "", "")

    with patch("core.command_exporter.subprocess.run", side_effect=fake_run) as run:
        items = exporter.fetch_batch(Module.ASSETS, {"uid": {"$in": ["bltasset1"]}})

    assert items == [{"uid": "bltasset1"}]
    cmd = run.call_args.args[0]
    assert cmd[cmd.index("--module") + 1] == "assets"

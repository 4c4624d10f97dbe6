"""Tests for core.query_exporter.QueryExporter."""

import json
import os
from unittest.mock import MagicMock

import pytest

from config import Module
from core.errors import FetchError
from core.module_exporter import ModuleExporter
from core.query_exporter import QueryExporter
from stack_export_shared import read_json

from conftest import content_type

BLOG = {
    "uid": "blog",
    "title": "Blog",
    "schema": [
        {"uid": "title", "data_type": "text"},
        {"uid": "author", "data_type": "reference", "reference_to": ["author", "sys_assets"]},
        {"uid": "seo", "data_type": "global_field", "reference_to": "seo_fields"},
        {"uid": "rating", "data_type": "number", "extension_uid": "ext_rating"},
        {"uid": "color", "data_type": "text", "extension_uid": "ext_color"},
        {"uid": "topics", "data_type": "taxonomy", "taxonomies": [{"taxonomy_uid": "topics"}]},
    ],
}
AUTHOR = content_type("author")

CATALOG = {
    Module.LOCALES: [{"uid": "loc_1", "code": "en-us", "name": "English"}],
    Module.ENVIRONMENTS: [{"uid": "env_1", "name": "production"}],
    Module.CONTENT_TYPES: [BLOG, AUTHOR, content_type("unrelated")],
    Module.GLOBAL_FIELDS: [{"uid": "seo_fields", "title": "SEO", "schema": []}],
    Module.EXTENSIONS: [
        {"uid": "ext_color", "title": "Color"},
        {"uid": "ext_rating", "title": "Rating", "app_uid": "app_1", "app_installation_uid": "inst_1"},
    ],
    Module.TAXONOMIES: [{"uid": "topics", "name": "Topics"}],
    Module.ASSETS: [
        {"uid": "bltasset1", "url": "https://images.contentstack.io/v3/assets/blt/bltasset1/v1/a.png",
         "filename": "a.png"},
        {"uid": "bltasset2", "url": "https://images.contentstack.io/v3/assets/blt/bltasset2/v1/b.png",
         "filename": "b.png"},
    ],
}

ENTRIES = {
    "blog": [{"uid": "entry_1", "locale": "en-us", "body": '<p><img asset_uid="bltasset1" /></p>'}],
    "author": [{"uid": "entry_2", "locale": "en-us",
                "photo": "https://images.contentstack.io/v3/assets/blt/bltasset2/v1/b.png"}],
}


class FakeStackClient:
    """In-memory stand-in for StackClient that records every call."""

    def __init__(self, fail_module=None):
        self.calls = []
        self.fail_module = fail_module

    def iter_query(self, module, query=None, limit=100, extra_params=None, path_params=None):
        module = Module(module)
        self.calls.append((module.value, json.dumps(query, sort_keys=True), extra_params))
        if module == self.fail_module:
            raise FetchError("HTTP 500", module=module.value, status_code=500)
        if module == Module.ENTRIES:
            return iter(ENTRIES.get(path_params["content_type_uid"], []))
        items = CATALOG.get(module, [])
        if query and "uid" in query:
            wanted = query["uid"]["$in"]
            items = [i for i in items if i["uid"] in wanted]
        return iter(items)

    def iter_entries(self, content_type_uid, query=None, limit=100, locale=None):
        return self.iter_query(
            Module.ENTRIES, query, limit,
            extra_params={"locale": locale} if locale else None,
            path_params={"content_type_uid": content_type_uid},
        )

    def fetch_stack(self):
        self.calls.append(("stack", None, None))
        return {"api_key": "blt_stack", "uid": "blt_stack", "settings": {}}

    def fetch_marketplace_installations(self, installation_uids, limit=100):
        self.calls.append(("marketplace-apps", json.dumps(installation_uids), None))
        return [{"uid": uid, "app_uid": "app_1"} for uid in installation_uids]


def _query_exporter(config, client, store):
    exporter = ModuleExporter(client, store, page_limit=config.page_limit)
    return QueryExporter(config, client=client, exporter=exporter, store=store, sleep=MagicMock())


def test_full_run_sequence(export_config, store):
    client = FakeStackClient()
    qe = _query_exporter(export_config, client, store)

    results = qe.run()

    assert results["success"] is True, results.get("error")
    modules_called = [c[0] for c in client.calls]
    assert modules_called == [
        "stack", "locales", "environments",
        "content-types",            # queried
        "content-types",            # referenced: author
        "extensions",               # marketplace lookup
        "global-fields",
        "extensions",
        "marketplace-apps",
        "taxonomies",
        "entries", "entries",
        "assets",
    ]
    lookup = client.calls[5]
    assert lookup[2] == {"include_marketplace_extensions": "true"}
    assert all(c[2] == {"locale": "en-us"} for c in client.calls if c[0] == "entries")


def test_full_run_outputs(export_config, store):
    qe = _query_exporter(export_config, FakeStackClient(), store)

    results = qe.run()

    assert [ct["uid"] for ct in store.read_content_types()] == ["blog", "author"]
    assert [e["uid"] for e in store.read_module(Module.EXTENSIONS)] == ["ext_color"]
    assert [a["uid"] for a in store.read_module(Module.MARKETPLACE_APPS)] == ["inst_1"]
    assert [g["uid"] for g in store.read_module(Module.GLOBAL_FIELDS)] == ["seo_fields"]
    assert set(read_json(os.path.join(store.output.module_dir("assets"), "assets.json"))) == {
        "bltasset1", "bltasset2"
    }
    assert results["asset_batches"] == [2]
    assert results["depth_limit_reached"] is False
    assert results["dependencies"]["marketplace_apps"] == 1


def test_query_metadata_file(export_config, store):
    qe = _query_exporter(export_config, FakeStackClient(), store)

    results = qe.run()

    meta = read_json(results["metadata_path"])
    assert results["metadata_path"].endswith("_query-meta.json")
    assert meta["query"] == json.loads(export_config.query_input)
    assert meta["flags"] == {"skipReferences": False, "skipDependencies": False, "securedAssets": False}
    assert meta["contentTypes"] == [{"uid": "blog", "title": "Blog"}, {"uid": "author", "title": "Author"}]
    assert meta["modules"]["assets"] == {"count": 2, "uids": ["bltasset1", "bltasset2"]}
    assert meta["summary"]["totalContentTypes"] == 2
    order = meta["resolvedModuleOrder"]
    assert order.index("content-types") < order.index("entries") < order.index("assets")
    assert "timestamp" in meta


def test_settling_delay_before_asset_scan(export_config, store):
    config = export_config.with_overrides(export_delay_seconds=2.5)
    qe = _query_exporter(config, FakeStackClient(), store)
    qe.run()
    qe.sleep.assert_called_once_with(2.5)


def test_skip_references(export_config, store):
    config = export_config.with_overrides(skip_references=True)
    client = FakeStackClient()
    qe = _query_exporter(config, client, store)

    results = qe.run()

    assert results["success"] is True
    assert [c[0] for c in client.calls].count("content-types") == 1
    assert [ct["uid"] for ct in store.read_content_types()] == ["blog"]
    assert "depth_limit_reached" not in results


def test_skip_dependencies(export_config, store):
    config = export_config.with_overrides(skip_dependencies=True)
    client = FakeStackClient()
    qe = _query_exporter(config, client, store)

    results = qe.run()

    called = {c[0] for c in client.calls}
    assert results["success"] is True
    assert not called & {"global-fields", "extensions", "taxonomies", "marketplace-apps"}
    assert "dependencies" not in results


def test_invalid_query_aborts_before_export(export_config, store):
    config = export_config.with_overrides(query_input='{"modules": {"entries": {}}}')
    client = FakeStackClient()
    qe = _query_exporter(config, client, store)

    results = qe.run()

    assert results["success"] is False
    assert results["error_type"] == "ValidationError"
    assert client.calls == []


def test_fetch_error_fails_the_run(export_config, store):
    client = FakeStackClient(fail_module=Module.TAXONOMIES)
    qe = _query_exporter(export_config, client, store)

    results = qe.run()

    assert results["success"] is False
    assert results["error_type"] == "FetchError"
    assert "entries" not in [c[0] for c in client.calls]
    assert not os.path.exists(store.output.get_root_path("_query-meta.json"))


def test_queried_filter_object_is_passed_through(export_config, store):
    exporter = MagicMock()
    exporter.ledger = MagicMock()
    qe = QueryExporter(export_config, client=MagicMock(), exporter=exporter, store=store, sleep=MagicMock())

    qe.export_queried_modules({"modules": {"content-types": {"uid": {"$in": ["blog"]}}}})

    exporter.export_module.assert_called_once_with(Module.CONTENT_TYPES, {"uid": {"$in": ["blog"]}})


def test_print_summary(export_config, store, capsys):
    qe = _query_exporter(export_config, FakeStackClient(), store)
    qe.print_summary({"success": False, "run_id": "abc", "error": "boom", "depth_limit_reached": True})
    out = capsys.readouterr().out
    assert "FAILED" in out
    assert "boom" in out
    assert "depth limit" in out


@pytest.mark.parametrize("backend", ["api", "command"])
def test_backend_selection(export_config, backend):
    config = export_config.with_overrides(export_backend=backend)
    qe = QueryExporter(config)
    expected = "ModuleExporter" if backend == "api" else "CommandModuleExporter"
    assert type(qe.exporter).__name__ == expected
    assert qe.exporter.ledger is qe.ledger

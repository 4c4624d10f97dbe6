"""Tests for core.dependency_resolver.ContentTypeDependenciesResolver."""

import logging
from unittest.mock import MagicMock

import pytest

from config import Module
from core.dependency_resolver import ContentTypeDependenciesResolver
from core.errors import FetchError
from core.schema_extractor import DependencyBundle

from conftest import load_fixture


@pytest.fixture
def blog():
    return load_fixture("content_types", "blog.json")


def _client(records=None, error=None):
    client = MagicMock()
    if error is not None:
        client.iter_query.side_effect = error
    else:
        client.iter_query.return_value = iter(records or [])
    return client


def test_extract_dependencies_reads_exported_content_types(store, blog):
    store.write_module(Module.CONTENT_TYPES, [blog])
    client = _client([])
    resolver = ContentTypeDependenciesResolver(client, store)

    bundle = resolver.extract_dependencies()

    assert bundle.global_fields == {"seo_fields", "cta_block"}
    assert bundle.taxonomies == {"topics"}
    assert bundle.extensions == {"ext_color", "ext_rating", "plugin_highlight"}


def test_marketplace_extensions_are_reclassified(store, blog):
    client = _client([
        {"uid": "ext_color", "title": "Color picker"},
        {"uid": "ext_rating", "app_uid": "app_1", "app_installation_uid": "inst_1"},
        {"uid": "plugin_highlight", "app_uid": "app_2"},
    ])
    resolver = ContentTypeDependenciesResolver(client, store)

    bundle = resolver.extract_dependencies([blog])

    assert bundle.extensions == {"ext_color", "plugin_highlight"}
    assert bundle.marketplace_apps == {"inst_1"}
    _, kwargs = client.iter_query.call_args
    assert kwargs["extra_params"] == {"include_marketplace_extensions": "true"}
    args, _ = client.iter_query.call_args
    assert args[0] == Module.EXTENSIONS
    assert args[1] == {"uid": {"$in": ["ext_color", "ext_rating", "plugin_highlight"]}}


def test_unresolved_extensions_stay_extensions(store):
    bundle = DependencyBundle(extensions={"ext_a", "ext_b"})
    client = _client([{"uid": "ext_a", "app_uid": "app", "app_installation_uid": "inst_a"}])

    ContentTypeDependenciesResolver(client, store).classify_extensions(bundle)

    assert bundle.extensions == {"ext_b"}
    assert bundle.marketplace_apps == {"inst_a"}


def test_lookup_failure_keeps_all_candidates(store, caplog):
    bundle = DependencyBundle(extensions={"ext_a", "ext_b"})
    client = _client(error=FetchError("HTTP 500", module="extensions", status_code=500))

    with caplog.at_level(logging.WARNING):
        ContentTypeDependenciesResolver(client, store).classify_extensions(bundle)

    assert bundle.extensions == {"ext_a", "ext_b"}
    assert bundle.marketplace_apps == set()
    assert "keeping all as extensions" in caplog.text


def test_no_extensions_skips_lookup(store):
    client = _client([])
    schema_only_refs = {"uid": "page", "schema": [{"uid": "r", "data_type": "reference", "reference_to": ["blog"]}]}

    bundle = ContentTypeDependenciesResolver(client, store).extract_dependencies([schema_only_refs])

    client.iter_query.assert_not_called()
    assert bundle.extensions == set()


def test_without_client_extensions_are_kept(store):
    bundle = DependencyBundle(extensions={"ext_a"})
    ContentTypeDependenciesResolver(None, store).classify_extensions(bundle)
    assert bundle.extensions == {"ext_a"}

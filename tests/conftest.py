"""Shared fixtures for the exporter test suite."""

import json
import os
import shutil

import pytest

from core.export_config import ExportConfig
from core.export_store import ExportStore
from stack_export_shared import OutputManager

FIXTURES_DIR = os.path.join(os.path.dirname(__file__), "fixtures")


def load_fixture(*parts):
    with open(os.path.join(FIXTURES_DIR, *parts)) as f:
        return json.load(f)


def content_type(uid, references=(), title=None):
    """Minimal content type whose schema references the given content types."""
    schema = [{"uid": "title", "data_type": "text"}]
    if references:
        schema.append({"uid": "ref", "data_type": "reference", "reference_to": list(references)})
    return {"uid": uid, "title": title or uid.title(), "schema": schema}


@pytest.fixture
def export_config(tmp_path):
    return ExportConfig(
        stack_api_key="blt_stack",
        management_token="cs_token",
        query_input='{"modules": {"content-types": {"uid": {"$in": ["blog"]}}}}',
        export_dir=str(tmp_path / "export"),
        export_delay_seconds=0,
    )


@pytest.fixture
def store(tmp_path):
    return ExportStore(OutputManager(str(tmp_path / "export")))


@pytest.fixture
def entries_dir(tmp_path):
    target = tmp_path / "entries"
    shutil.copytree(os.path.join(FIXTURES_DIR, "entries"), target)
    return str(target)

"""
Query metadata — the _query-meta.json sidecar written at the end of a run.

Records what was asked for and what was exported, so an import (or a
person) can tell how the export directory was produced.
"""

from datetime import datetime, timezone
from importlib import metadata as importlib_metadata
from typing import Any, Dict, List, Optional

from config import Module

from .module_exporter import ExportedModulesLedger
from .module_order import ModuleOrderResolver

PACKAGE_NAME = "stack-export-query"


def _tool_version() -> str:
    try:
        return importlib_metadata.version(PACKAGE_NAME)
    except importlib_metadata.PackageNotFoundError:
        return "unknown"


def build_query_metadata(
    query: Dict[str, Any],
    config,
    ledger: ExportedModulesLedger,
    content_types: Optional[List[Dict[str, Any]]] = None,
    order_resolver: Optional[ModuleOrderResolver] = None,
    run_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Build the metadata document for a finished run.

    Args:
        query: The validated user query.
        config: ExportConfig of the run.
        ledger: Modules exported during the run.
        content_types: Final content type set (uid and title are recorded).
        order_resolver: Used to order the exported modules by dependency.
        run_id: Correlation id of the run.
    """
    resolver = order_resolver or ModuleOrderResolver()
    content_types = content_types or []
    exported = ledger.modules

    modules = {}
    for module in exported:
        modules[module.value] = {"count": ledger.count(module), "uids": ledger.uids(module)}

    return {
        "query": query,
        "flags": {
            "skipReferences": config.skip_references,
            "skipDependencies": config.skip_dependencies,
            "securedAssets": config.secured_assets,
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "toolVersion": _tool_version(),
        "runId": run_id,
        "branch": config.branch_name or None,
        "exportedModules": [m.value for m in exported],
        "resolvedModuleOrder": [m.value for m in resolver.order(exported)],
        "modules": modules,
        "contentTypes": [
            {"uid": ct.get("uid"), "title": ct.get("title")}
            for ct in content_types
        ],
        "summary": {
            "totalContentTypes": len(content_types),
            "totalModules": len(exported),
            "totalItems": sum(ledger.count(m) for m in exported),
            "totalAssets": ledger.count(Module.ASSETS),
        },
    }

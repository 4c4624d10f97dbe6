"""
Module Exporter — Fetches one module from the stack and writes it to disk.

export_module() is the single entry point the orchestrator and resolvers
use. Behaviour that differs per module is looked up in config.modules; only
the modules whose data does not come from a paged list endpoint have their
own handlers:

  stack             GET /stacks, written as one document
  entries           every entry of every exported content type
  marketplace-apps  installations from the developer hub, filtered by uid
  personalize       the stack's linked personalize project, when one exists

Every successful export is recorded in the ExportedModulesLedger, which
keeps module order, item counts and uids for the query metadata file.
fetch_batch() records a batch without writing it, for callers that merge
batches into their own staging files.
"""

import logging
from typing import Any, Dict, Iterator, List, Optional

from config import Module

from .export_store import ExportStore
from .stack_client import StackClient

logger = logging.getLogger(__name__)


class ExportedModulesLedger:
    """Ordered, de-duplicating record of the modules written during a run."""

    def __init__(self):
        self._modules: List[Module] = []
        self._uids: Dict[Module, List[str]] = {}

    def record(self, module: Module, items: Optional[List[Dict[str, Any]]] = None) -> None:
        module = Module(module)
        if module not in self._modules:
            self._modules.append(module)
            self._uids[module] = []
        known = set(self._uids[module])
        for item in items or []:
            uid = item.get("uid") or item.get("code")
            if uid and uid not in known:
                self._uids[module].append(uid)
                known.add(uid)

    @property
    def modules(self) -> List[Module]:
        return list(self._modules)

    def uids(self, module: Module) -> List[str]:
        return list(self._uids.get(Module(module), []))

    def count(self, module: Module) -> int:
        return len(self._uids.get(Module(module), []))

    def __contains__(self, module) -> bool:
        return Module(module) in self._modules

    def __iter__(self) -> Iterator[Module]:
        return iter(list(self._modules))

    def __len__(self) -> int:
        return len(self._modules)

    def as_dict(self) -> Dict[str, Dict[str, Any]]:
        return {
            m.value: {"count": self.count(m), "uids": self.uids(m)}
            for m in self._modules
        }


def _in_values(query: Optional[Dict[str, Any]], *keys: str) -> List[str]:
    """Return the $in list of the first matching key of a filter object."""
    for key in keys:
        condition = (query or {}).get(key)
        if isinstance(condition, dict) and isinstance(condition.get("$in"), list):
            return list(condition["$in"])
    return []


class ModuleExporter:
    """Exports modules through the stack API.

    Attributes:
        client: StackClient used for every fetch.
        store: ExportStore the results are written to.
        ledger: Record of exported modules shared with the orchestrator.
        page_limit: Page size for paged endpoints.
    """

    def __init__(
        self,
        client: StackClient,
        store: ExportStore,
        ledger: Optional[ExportedModulesLedger] = None,
        page_limit: int = 100,
        log=None,
    ):
        self.client = client
        self.store = store
        self.ledger = ledger if ledger is not None else ExportedModulesLedger()
        self.page_limit = page_limit
        self.log = log or logger

    def export_module(
        self,
        module: Module,
        query: Optional[Dict[str, Any]] = None,
        merge: bool = False,
    ) -> List[Dict[str, Any]]:
        """Fetch a module (optionally filtered) and write it to the export directory.

        Args:
            module: Module to export.
            query: Filter object for the module, e.g. {"uid": {"$in": [...]}}.
            merge: Merge with records of the module already on disk.

        Returns:
            The exported records.

        Raises:
            FetchError: If the API call fails.
        """
        module = Module(module)
        self.log.info(f"Exporting module: {module.value}")
        try:
            if module == Module.STACK:
                items = self._export_stack()
            elif module == Module.ENTRIES:
                items = self._export_entries(query)
            elif module == Module.MARKETPLACE_APPS:
                items = self._export_marketplace_apps(query, merge)
            elif module == Module.PERSONALIZE:
                items = self._export_personalize()
                if items is None:
                    return []
            else:
                items = self.fetch(module, query)
                self.store.write_module(module, items, merge=merge)
        except Exception as e:
            self.log.error(f"Failed to export {module.value}: {e}")
            raise

        self.ledger.record(module, items)
        self.log.info(f"Successfully exported {module.value} ({len(items)} item(s))")
        return items

    def fetch(self, module: Module, query: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Fetch every record of a module matching the query, without writing."""
        return list(self.client.iter_query(module, query, limit=self.page_limit))

    def fetch_batch(self, module: Module, query: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Fetch one batch of a module and record it, leaving the module's files untouched.

        The caller owns merging batches into the export directory.
        """
        module = Module(module)
        try:
            items = self.fetch(module, query)
        except Exception as e:
            self.log.error(f"Failed to fetch {module.value} batch: {e}")
            raise
        self.ledger.record(module, items)
        return items

    def _export_stack(self) -> List[Dict[str, Any]]:
        stack = self.client.fetch_stack()
        self.store.write_document(Module.STACK, stack)
        return [stack] if stack else []

    def _export_entries(self, query: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
        content_types = self.store.read_content_types()
        if not content_types:
            self.log.warning("No exported content types found, skipping entries")
            return []

        # Without exported locales the API falls back to the master locale
        locale_codes = [loc["code"] for loc in self.store.read_module(Module.LOCALES) if loc.get("code")]

        all_entries = []
        for ct in content_types:
            ct_uid = ct.get("uid")
            if not ct_uid:
                continue
            entries = []
            for code in locale_codes or [None]:
                for entry in self.client.iter_entries(ct_uid, query, limit=self.page_limit, locale=code):
                    if code:
                        entry.setdefault("locale", code)
                    entries.append(entry)
            self.store.write_entries(ct_uid, entries)
            self.log.debug(f"  {ct_uid}: {len(entries)} entries in {len(locale_codes) or 1} locale(s)")
            all_entries.extend(entries)
        return all_entries

    def _export_marketplace_apps(self, query: Optional[Dict[str, Any]], merge: bool) -> List[Dict[str, Any]]:
        installation_uids = _in_values(query, "installation_uid", "uid")
        if not installation_uids:
            self.log.info("No marketplace app installations requested")
            return []

        installations = self.client.fetch_marketplace_installations(installation_uids, limit=self.page_limit)
        missing = set(installation_uids) - {i.get("uid") for i in installations}
        if missing:
            self.log.warning(f"Marketplace installations not found: {', '.join(sorted(missing))}")
        self.store.write_module(Module.MARKETPLACE_APPS, installations, merge=merge)
        return installations

    def _export_personalize(self) -> Optional[List[Dict[str, Any]]]:
        stack = self.store.read_document(Module.STACK) or self.client.fetch_stack()
        project_uid = personalize_project_uid(stack)
        if not project_uid:
            self.log.info("Stack has no linked personalize project, skipping personalize")
            return None

        project = {"uid": project_uid, "stack_api_key": stack.get("api_key", "")}
        self.store.write_document(Module.PERSONALIZE, project)
        return [project]


def personalize_project_uid(stack: Dict[str, Any]) -> Optional[str]:
    """Return the personalize project linked to a stack, if any."""
    settings = stack.get("settings") or {}
    return settings.get("linked_personalize_project") or stack.get("linked_personalize_project")

"""
Export Store — Reads and writes exported module data on disk.

Layout (relative to OutputManager.root_dir):

    stack/settings.json                       stack settings
    content_types/schema.json                 aggregate list
    content_types/<uid>.json                  one file per content type
    global_fields/globalfields.json           aggregate list
    global_fields/<uid>.json
    extensions/extensions.json                aggregate map keyed by uid
    extensions/<uid>.json
    taxonomies/taxonomies.json                aggregate map keyed by uid
    taxonomies/<uid>.json
    entries/<content_type_uid>/<locale>.json  entries keyed by uid
    entries/<content_type_uid>/index.json     files written for the content type
    assets/metadata.json, assets/assets.json  written by AssetBatchExporter

Content types and global fields are stored as lists because they are read
back as ordered schema sets; every other module is stored as a map keyed by
uid. Writes merge with what is already on disk when asked to, so repeated
exports of the same module accumulate instead of overwriting.
"""

import logging
import os
from typing import Any, Dict, Iterable, List, Optional

from config import Module, get_definition
from stack_export_shared import OutputManager, read_json, write_json

logger = logging.getLogger(__name__)

LIST_MODULES = (Module.CONTENT_TYPES, Module.GLOBAL_FIELDS)
DEFAULT_LOCALE = "en-us"


def _record_key(record: Dict[str, Any]) -> Optional[str]:
    return record.get("uid") or record.get("code")


class ExportStore:
    """Module-aware persistence over an OutputManager."""

    def __init__(self, output: OutputManager, log=None):
        self.output = output
        self.log = log or logger

    @classmethod
    def from_config(cls, config, log=None) -> "ExportStore":
        return cls(OutputManager(config.export_dir, config.branch_name), log=log)

    def module_path(self, module: Module) -> str:
        definition = get_definition(module)
        return self.output.get_output_path(definition.dir_name, definition.file_name)

    # ------------------------------------------------------------------
    # Module aggregates
    # ------------------------------------------------------------------

    def write_module(self, module: Module, items: List[Dict[str, Any]], merge: bool = False) -> str:
        """Write a module's aggregate file (and per-record files where configured).

        Args:
            module: Module being written.
            items: Records returned by the API.
            merge: Combine with records already on disk, replacing by uid.

        Returns:
            Path of the aggregate file.
        """
        module = Module(module)
        definition = get_definition(module)
        path = self.module_path(module)

        existing = self.read_module(module) if merge else []
        by_key = {_record_key(r): r for r in existing}
        for item in items:
            by_key[_record_key(item)] = item
        records = list(by_key.values())

        if module in LIST_MODULES:
            write_json(path, records)
        else:
            write_json(path, {_record_key(r): r for r in records})

        if definition.per_record_files:
            for item in items:
                uid = item.get("uid")
                if uid:
                    write_json(self.output.get_output_path(definition.dir_name, f"{uid}.json"), item)

        self.log.debug(f"Wrote {len(records)} {module.value} record(s) to {path}")
        return path

    def read_module(self, module: Module) -> List[Dict[str, Any]]:
        """Read a module's aggregate file as a list of records ([] when absent)."""
        data = read_json(self.module_path(module), default=None)
        if data is None:
            return []
        if isinstance(data, dict):
            return list(data.values())
        return list(data)

    def read_records(self, module: Module, uids: Iterable[str]) -> List[Dict[str, Any]]:
        """Read per-record files for the given uids, skipping any that are missing."""
        definition = get_definition(module)
        records = []
        for uid in uids:
            record = read_json(self.output.get_output_path(definition.dir_name, f"{uid}.json"))
            if record is not None:
                records.append(record)
        return records

    def read_content_types(self) -> List[Dict[str, Any]]:
        return self.read_module(Module.CONTENT_TYPES)

    # ------------------------------------------------------------------
    # Single documents
    # ------------------------------------------------------------------

    def write_document(self, module: Module, data: Dict[str, Any]) -> str:
        """Write a module whose aggregate file is one object (stack settings, personalize)."""
        path = self.module_path(module)
        write_json(path, data)
        return path

    def read_document(self, module: Module) -> Dict[str, Any]:
        return read_json(self.module_path(module), default={}) or {}

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    @property
    def entries_dir(self) -> str:
        return self.output.module_dir(get_definition(Module.ENTRIES).dir_name)

    def write_entries(self, content_type_uid: str, entries: List[Dict[str, Any]]) -> List[str]:
        """Write a content type's entries grouped by locale.

        Returns:
            The locale files written, also recorded in the content type's index.json.
        """
        by_locale: Dict[str, Dict[str, Any]] = {}
        for entry in entries:
            locale = entry.get("locale") or DEFAULT_LOCALE
            by_locale.setdefault(locale, {})[entry.get("uid")] = entry

        ct_dir = os.path.join(self.entries_dir, content_type_uid)
        written = []
        for locale, records in sorted(by_locale.items()):
            file_name = f"{locale}.json"
            write_json(os.path.join(ct_dir, file_name), records)
            written.append(file_name)

        index_name = get_definition(Module.ENTRIES).file_name
        write_json(os.path.join(ct_dir, index_name), {name: name for name in written})
        return written

    # ------------------------------------------------------------------
    # Run metadata
    # ------------------------------------------------------------------

    def write_root_file(self, file_name: str, data: Any) -> str:
        return write_json(self.output.get_root_path(file_name), data)

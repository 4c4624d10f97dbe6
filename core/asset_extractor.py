"""
Asset Reference Extractor — Finds asset uids embedded in exported entries.

Entries are serialized to JSON as a whole (not field by field) so that asset
references are found at any nesting depth. Two independent patterns are
matched against the serialized text:

  Inline embed   <img asset_uid=\\"blt...\\"  as it appears inside escaped
                 rich-text HTML
  Hosted URL     https://[<region>-]images.contentstack.io/v3/assets/<stack>/<asset_uid>/<version>/<file>
                 (also assets.contentstack.io and .com hosts)

The entries directory is processed one file at a time; a running set
accumulates matches across files so the whole corpus is never held in memory.
"""

import json
import logging
import os
import re
from typing import Any, Iterator, List, Optional, Set

logger = logging.getLogger(__name__)

INLINE_ASSET_PATTERN = re.compile(r'<img asset_uid=\\"([^"\\]+)\\"')

# Region prefixes are non-capturing so the asset uid is always group 2.
# The file segment ends before any quote, escape, whitespace, "?", "#" or ")".
ASSET_URL_PATTERN = re.compile(
    r"https://(?:assets|(?:eu-|azure-na-|azure-eu-|gcp-na-|gcp-eu-)?images)"
    r"\.contentstack\.(?:io|com)"
    r'/v3/assets/([^/"\\]+)/([^/"\\]+)/([^/"\\]+)/([^/"\\\s?#)]+)'
)
ASSET_URL_UID_GROUP = 2

SKIPPED_FILES = ("index.json",)


def extract_asset_uids_from_string(content: str) -> List[str]:
    """Return the unique asset uids referenced in a serialized string, in first-seen order."""
    found = {}
    for match in INLINE_ASSET_PATTERN.finditer(content):
        found.setdefault(match.group(1), None)
    for match in ASSET_URL_PATTERN.finditer(content):
        found.setdefault(match.group(ASSET_URL_UID_GROUP), None)
    return list(found)


class AssetReferenceExtractor:
    """Scans an exported entries directory for referenced asset uids."""

    def __init__(self, entries_dir: str, log=None):
        self.entries_dir = entries_dir
        self.log = log or logger
        self.files_processed = 0
        self.entries_processed = 0

    def extract_referenced_assets(self) -> List[str]:
        """Extract asset uids from every entry file under entries_dir.

        Returns:
            Sorted list of unique asset uids. Empty if the directory is missing.
        """
        if not os.path.isdir(self.entries_dir):
            self.log.warning(f"Entries directory does not exist: {self.entries_dir}")
            return []

        asset_uids: Set[str] = set()
        self.files_processed = 0
        self.entries_processed = 0

        for file_path in self._iter_entry_files():
            count = self._process_file(file_path, asset_uids)
            if count is not None:
                self.files_processed += 1
                self.entries_processed += count

        self.log.info(
            f"Found {len(asset_uids)} unique asset uids from {self.entries_processed} entries "
            f"across {self.files_processed} files"
        )
        return sorted(asset_uids)

    def _iter_entry_files(self) -> Iterator[str]:
        for root, dirs, files in os.walk(self.entries_dir):
            dirs.sort()
            for name in sorted(files):
                if name.endswith(".json") and name not in SKIPPED_FILES:
                    yield os.path.join(root, name)

    def _process_file(self, file_path: str, asset_uids: Set[str]) -> Optional[int]:
        """Add one file's asset uids to the running set; returns its entry count or None."""
        try:
            with open(file_path, encoding="utf-8") as fh:
                content: Any = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            self.log.warning(f"Failed to process file {file_path}: {e}")
            return None

        if not content or not isinstance(content, (dict, list)):
            return 0

        asset_uids.update(extract_asset_uids_from_string(json.dumps(content)))
        self.log.debug(f"Processed {len(content)} entries from {os.path.basename(file_path)}")
        return len(content)

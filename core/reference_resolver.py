"""
Referenced Content Types Resolver — Pulls in every content type the export reaches.

Starting from the content types already exported by the user's query, each
pass:

  1. marks the current batch as exported
  2. collects the content types referenced by the batch's schemas
  3. drops everything already exported
  4. stops when nothing new is left, otherwise fetches exactly the new uids
     (uid $in [...]) and reads them back from disk as the next batch

The exported set only grows and is bounded by the number of content types
in the stack, so mutual references (A -> B -> A) terminate. Reference chains
deeper than max_iterations are cut off with a warning; the content types
accumulated so far are still written.

Each batch is persisted before it is scanned, so a failure mid-loop leaves
every content type fetched so far on disk.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from config import Module

from .export_store import ExportStore
from .schema_extractor import SchemaDependencyExtractor

logger = logging.getLogger(__name__)


@dataclass
class ReferenceResolution:
    """Outcome of one closure run."""
    content_types: List[Dict[str, Any]] = field(default_factory=list)
    exported_uids: Set[str] = field(default_factory=set)
    fetched_uids: List[str] = field(default_factory=list)
    missing_uids: Set[str] = field(default_factory=set)
    iterations: int = 0
    depth_limit_reached: bool = False


class ReferencedContentTypesResolver:
    """Computes and exports the referenced content type closure.

    Attributes:
        exporter: ModuleExporter (or CommandModuleExporter) used for fetches.
        store: ExportStore the batches are read back from.
        max_iterations: Maximum number of passes before the depth cut-off.
    """

    def __init__(self, exporter, store: ExportStore,
                 extractor: Optional[SchemaDependencyExtractor] = None,
                 max_iterations: int = 20, log=None):
        self.exporter = exporter
        self.store = store
        self.extractor = extractor or SchemaDependencyExtractor()
        self.max_iterations = max_iterations
        self.log = log or logger

    def resolve(self, initial: Optional[List[Dict[str, Any]]] = None) -> ReferenceResolution:
        """Run the closure loop and write the grown content type set.

        Args:
            initial: Starting content types. Read from the export directory when None.

        Returns:
            ReferenceResolution with the accumulated content types.

        Raises:
            FetchError: If fetching a batch fails.
        """
        content_types = list(initial) if initial is not None else self.store.read_content_types()
        result = ReferenceResolution(content_types=list(content_types))
        current_batch = list(content_types)

        self.log.info(f"Starting with {len(current_batch)} initial content types")

        while current_batch:
            if result.iterations >= self.max_iterations:
                result.depth_limit_reached = True
                self.log.warning(
                    f"Reached maximum content type reference depth ({self.max_iterations}); "
                    f"{len(current_batch)} content type(s) were not scanned for further references"
                )
                break

            result.iterations += 1
            result.exported_uids.update(ct["uid"] for ct in current_batch if ct.get("uid"))

            referenced = self.extractor.referenced_content_types(current_batch)
            new_uids = sorted(referenced - result.exported_uids - result.missing_uids)
            if not new_uids:
                self.log.info("No new referenced content types found, stopping")
                break

            self.log.info(f"Found {len(new_uids)} new referenced content types to fetch")
            self.exporter.export_module(Module.CONTENT_TYPES, {"uid": {"$in": new_uids}}, merge=True)

            current_batch = self.store.read_records(Module.CONTENT_TYPES, new_uids)
            returned = {ct.get("uid") for ct in current_batch}
            not_found = set(new_uids) - returned
            if not_found:
                self.log.warning(f"Referenced content types not found: {', '.join(sorted(not_found))}")
                result.missing_uids |= not_found

            result.content_types.extend(current_batch)
            result.fetched_uids.extend(ct["uid"] for ct in current_batch if ct.get("uid"))
            self.log.info(f"Fetched {len(current_batch)} new content types for next iteration")

        if result.content_types:
            self.store.write_module(Module.CONTENT_TYPES, result.content_types)
        self.log.info(
            f"Referenced content types resolved: {len(result.fetched_uids)} added "
            f"in {result.iterations} pass(es)"
        )
        return result

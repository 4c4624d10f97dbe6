"""
Query Exporter — Pipeline coordination for query-based stack exports.

Ties the other core modules together into a strictly sequential workflow.
Each step reads what the previous step committed to disk:

  Step 1: PARSE QUERY
      QueryParser reads the query (inline JSON or a .json file) and validates
      it. Parse and validation errors abort the run before anything is written.

  Step 2: GENERAL MODULES
      stack, locales and environments are exported unconditionally.

  Step 3: QUERIED MODULES
      Each module named in the query is exported with its filter object.

  Step 4: REFERENCED CONTENT TYPES   (skipped with --skip-references)
      ReferencedContentTypesResolver grows the content type set until no new
      references appear or the depth cut-off is reached.

  Step 5: DEPENDENT MODULES          (skipped with --skip-dependencies)
      ContentTypeDependenciesResolver finds global fields, extensions,
      marketplace apps and taxonomies; each non-empty set is exported by uid.
      personalize is exported last.

  Step 6: ENTRIES
      Entries of every content type now on disk.

  Step 7: REFERENCED ASSETS
      After a settling delay, AssetReferenceExtractor scans the exported
      entries and AssetBatchExporter exports the matches in batches.

  Step 8: QUERY METADATA
      _query-meta.json is written to the export root.

Typical usage:
    config = load_export_config(overrides={...})
    exporter = QueryExporter(config)
    results = exporter.run()
    exporter.print_summary(results)
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from config import GENERAL_MODULES, Module

from .asset_batches import AssetBatchExporter
from .asset_extractor import AssetReferenceExtractor
from .command_exporter import CommandModuleExporter
from .dependency_resolver import ContentTypeDependenciesResolver
from .errors import QueryExportError
from .export_config import ExportConfig, RunContext, get_run_logger
from .export_store import ExportStore
from .module_exporter import ExportedModulesLedger, ModuleExporter
from .module_order import ModuleOrderResolver
from .query_metadata import build_query_metadata
from .query_parser import QueryParser, modules_in_query
from .reference_resolver import ReferencedContentTypesResolver
from .schema_extractor import DependencyBundle
from .stack_client import StackClient


def _banner(title: str) -> None:
    print(f"\n{'='*60}")
    print(title)
    print("="*60)


class QueryExporter:
    """Runs one query-based export.

    Attributes:
        config: Immutable settings for the run.
        context: Run id, stack key and branch attached to every log line.
        store: Reads and writes the export directory.
        client: StackClient, or None for the command backend without a token.
        exporter: ModuleExporter or CommandModuleExporter.
        ledger: Modules exported so far, shared with the exporter.
    """

    def __init__(
        self,
        config: ExportConfig,
        client: Optional[StackClient] = None,
        exporter=None,
        store: Optional[ExportStore] = None,
        context: Optional[RunContext] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.context = context or RunContext(stack_api_key=config.stack_api_key, branch=config.branch_name)
        self.log = get_run_logger(__name__, self.context)
        self.sleep = sleep

        self.store = store or ExportStore.from_config(config, log=self.log)
        self.ledger = ExportedModulesLedger()

        if client is None and (config.export_backend == "api" or config.management_token):
            client = StackClient.from_config(config, log=self.log)
        self.client = client

        if exporter is None:
            if config.export_backend == "command":
                exporter = CommandModuleExporter(config, self.store, self.ledger, log=self.log)
            else:
                exporter = ModuleExporter(self.client, self.store, self.ledger, config.page_limit, log=self.log)
        else:
            self.ledger = getattr(exporter, "ledger", self.ledger)
        self.exporter = exporter

        self.parser = QueryParser.from_config(config, log=self.log)
        self.order_resolver = ModuleOrderResolver()

    def run(self) -> Dict[str, Any]:
        """Execute the full export pipeline.

        Returns:
            A dict containing:
                - run_id, started_at/completed_at
                - success: True if every step completed
                - summary: per-module counts and dependency counts
                - depth_limit_reached: True if the reference loop was cut off
                - metadata_path: path of _query-meta.json (on success)
                - error / error_type: set when success is False
        """
        results: Dict[str, Any] = {
            "run_id": self.context.run_id,
            "started_at": datetime.now(timezone.utc).isoformat(),
            "config": {
                "stack_api_key": self.config.stack_api_key,
                "branch": self.config.branch_name or None,
                "export_dir": self.config.export_dir,
                "backend": self.config.export_backend,
                "skip_references": self.config.skip_references,
                "skip_dependencies": self.config.skip_dependencies,
            },
            "success": False,
        }

        try:
            _banner("STEP 1: PARSE QUERY")
            query = self.parser.parse(self.config.query_input)
            self.log.info("Query parsed and validated successfully")

            _banner("STEP 2: GENERAL MODULES")
            self.export_general_modules()

            _banner("STEP 3: QUERIED MODULES")
            self.export_queried_modules(query)

            if self.config.skip_references:
                self.log.info("Skipping referenced content types (--skip-references)")
            else:
                _banner("STEP 4: REFERENCED CONTENT TYPES")
                resolution = self.export_referenced_content_types()
                results["depth_limit_reached"] = resolution.depth_limit_reached
                results["reference_iterations"] = resolution.iterations

            if self.config.skip_dependencies:
                self.log.info("Skipping dependent modules (--skip-dependencies)")
            else:
                _banner("STEP 5: DEPENDENT MODULES")
                bundle = self.export_dependent_modules()
                results["dependencies"] = bundle.summary()

            _banner("STEP 6: ENTRIES")
            self.exporter.export_module(Module.ENTRIES)

            _banner("STEP 7: REFERENCED ASSETS")
            if self.config.export_delay_seconds > 0:
                self.log.info(f"Waiting {self.config.export_delay_seconds}s for entry output to settle")
                self.sleep(self.config.export_delay_seconds)
            asset_result = self.export_referenced_assets()
            results["asset_batches"] = asset_result.batch_sizes

            _banner("STEP 8: QUERY METADATA")
            results["metadata_path"] = self.write_query_metadata(query)

            results["success"] = True
            results["summary"] = {m.value: self.ledger.count(m) for m in self.ledger}

        except QueryExportError as e:
            results["error"] = str(e)
            results["error_type"] = type(e).__name__
            self.log.error(f"{type(e).__name__}: {e}")
        except Exception as e:
            results["error"] = str(e)
            results["error_type"] = type(e).__name__
            self.log.exception(f"Unexpected error: {e}")

        results["completed_at"] = datetime.now(timezone.utc).isoformat()
        return results

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def export_general_modules(self) -> None:
        for module in GENERAL_MODULES:
            self.exporter.export_module(module)

    def export_queried_modules(self, query: Dict[str, Any]) -> None:
        for module in modules_in_query(query):
            self.log.info(f"Exporting {module.value} with query...")
            self.exporter.export_module(module, query["modules"][module.value])

    def export_referenced_content_types(self):
        resolver = ReferencedContentTypesResolver(
            self.exporter,
            self.store,
            max_iterations=self.config.max_ct_reference_depth,
            log=self.log,
        )
        resolution = resolver.resolve()
        # Content types fetched by uid are part of the closure, not a user query
        self.ledger.record(Module.CONTENT_TYPES, resolution.content_types)
        return resolution

    def export_dependent_modules(self) -> DependencyBundle:
        resolver = ContentTypeDependenciesResolver(
            self.client, self.store, page_limit=self.config.page_limit, log=self.log
        )
        bundle = resolver.extract_dependencies()

        self._export_by_uid(Module.GLOBAL_FIELDS, bundle.global_fields)
        self._export_by_uid(Module.EXTENSIONS, bundle.extensions)
        self._export_by_uid(Module.MARKETPLACE_APPS, bundle.marketplace_apps, key="installation_uid")
        self._export_by_uid(Module.TAXONOMIES, bundle.taxonomies)
        self.exporter.export_module(Module.PERSONALIZE)
        return bundle

    def export_referenced_assets(self):
        extractor = AssetReferenceExtractor(self.store.entries_dir, log=self.log)
        asset_uids = extractor.extract_referenced_assets()
        if not asset_uids:
            self.log.info("No referenced assets found in entries")
        batch_exporter = AssetBatchExporter(
            self.exporter, self.store.output, self.config.asset_batch_size, log=self.log
        )
        return batch_exporter.export(asset_uids)

    def write_query_metadata(self, query: Dict[str, Any]) -> str:
        metadata = build_query_metadata(
            query,
            self.config,
            self.ledger,
            content_types=self.store.read_content_types(),
            order_resolver=self.order_resolver,
            run_id=self.context.run_id,
        )
        path = self.store.write_root_file(self.config.metadata_file_name, metadata)
        self.log.info(f"Query metadata written to: {path}")
        return path

    def _export_by_uid(self, module: Module, uids, key: str = "uid") -> List[Dict[str, Any]]:
        if not uids:
            self.log.info(f"No {module.value} dependencies found")
            return []
        uid_list = sorted(uids)
        self.log.info(f"Exporting {len(uid_list)} {module.value}...")
        return self.exporter.export_module(module, {key: {"$in": uid_list}})

    def print_summary(self, results: Dict):
        """Print a human-readable execution summary.

        Args:
            results: The dict returned by run().
        """
        _banner("EXPORT COMPLETE")
        print(f"Status: {'SUCCESS' if results.get('success') else 'FAILED'}")
        print(f"Run: {results.get('run_id', 'N/A')}")

        summary = results.get("summary", {})
        for module, count in summary.items():
            print(f"{module}: {count}")

        if results.get("depth_limit_reached"):
            print("Warning: content type reference depth limit reached")
        if results.get("metadata_path"):
            print(f"Metadata: {results['metadata_path']}")
        if results.get("error"):
            print(f"Error: {results['error']}")

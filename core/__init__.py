"""
Core package — The query-based export pipeline.

Each module handles one concern:

  query_exporter.py       Pipeline coordination (Steps 1-8)
  query_parser.py         Parse and validate the user query (Step 1)
  stack_client.py         HTTP communication with the content management API
  module_exporter.py      Export one module through the API; exported modules ledger
  command_exporter.py     Export one module through an external export command
  export_store.py         Read/write module files in the export directory
  schema_fields.py        Typed schema field model
  schema_extractor.py     Dependency uids of a schema (DependencyBundle)
  reference_resolver.py   Referenced content type closure (Step 4)
  dependency_resolver.py  Global fields, extensions, marketplace apps, taxonomies (Step 5)
  asset_extractor.py      Asset uids referenced by exported entries (Step 7)
  asset_batches.py        Batched asset export and merge (Step 7)
  module_order.py         Dependency ordering of module sets
  query_metadata.py       _query-meta.json contents (Step 8)
  export_config.py        ExportConfig, RunContext and run-scoped logging
  errors.py               Exception types
"""

from .errors import (
    QueryExportError,
    ParseError,
    ValidationError,
    QueryTooComplexError,
    CircularDependencyError,
    FetchError,
)
from .export_config import ExportConfig, RunContext, load_export_config, resolve_alias, get_run_logger
from .query_parser import QueryParser, modules_in_query
from .schema_fields import parse_field, parse_schema
from .schema_extractor import DependencyBundle, SchemaDependencyExtractor, SYS_ASSETS
from .asset_extractor import AssetReferenceExtractor, extract_asset_uids_from_string
from .module_order import ModuleOrderResolver, order_modules
from .stack_client import StackClient
from .export_store import ExportStore
from .module_exporter import ExportedModulesLedger, ModuleExporter
from .command_exporter import CommandModuleExporter
from .reference_resolver import ReferencedContentTypesResolver, ReferenceResolution
from .dependency_resolver import ContentTypeDependenciesResolver
from .asset_batches import AssetBatchExporter, AssetBatchResult, split_batches
from .query_metadata import build_query_metadata
from .query_exporter import QueryExporter

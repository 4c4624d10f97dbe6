"""
Content Type Dependencies Resolver — Global fields, extensions, apps and taxonomies.

Runs once over the complete content type set (queried plus referenced) and
returns a DependencyBundle. Extension uids found in schemas may belong to
marketplace apps, so they are looked up with include_marketplace_extensions:

  - a record carrying both app_uid and app_installation_uid is a marketplace
    app; its installation uid goes into bundle.marketplace_apps
  - a record that is not returned stays a plain extension
  - if the lookup itself fails, every candidate stays a plain extension
"""

import logging
from typing import Any, Dict, List, Optional

from config import Module

from .errors import FetchError
from .export_store import ExportStore
from .schema_extractor import DependencyBundle, SchemaDependencyExtractor
from .stack_client import StackClient

logger = logging.getLogger(__name__)


class ContentTypeDependenciesResolver:
    """Extracts dependent-module uids from exported content types."""

    def __init__(self, client: Optional[StackClient], store: ExportStore,
                 extractor: Optional[SchemaDependencyExtractor] = None,
                 page_limit: int = 100, log=None):
        self.client = client
        self.store = store
        self.extractor = extractor or SchemaDependencyExtractor()
        self.page_limit = page_limit
        self.log = log or logger

    def extract_dependencies(self, content_types: Optional[List[Dict[str, Any]]] = None) -> DependencyBundle:
        """Collect dependencies of the content types and classify extensions.

        Args:
            content_types: Content types to scan. Read from the export directory when None.
        """
        if content_types is None:
            content_types = self.store.read_content_types()

        self.log.info(f"Extracting dependencies from {len(content_types)} content types")
        bundle = self.extractor.extract_from_records(content_types)

        if bundle.extensions:
            self.classify_extensions(bundle)

        counts = bundle.summary()
        self.log.info(
            f"Found dependencies - global fields: {counts['global_fields']}, "
            f"extensions: {counts['extensions']}, marketplace apps: {counts['marketplace_apps']}, "
            f"taxonomies: {counts['taxonomies']}"
        )
        return bundle

    def classify_extensions(self, bundle: DependencyBundle) -> DependencyBundle:
        """Move extension uids that belong to marketplace apps into bundle.marketplace_apps."""
        candidates = sorted(bundle.extensions)
        if self.client is None:
            self.log.info("No API client available, keeping all extension uids as extensions")
            return bundle
        try:
            records = list(self.client.iter_query(
                Module.EXTENSIONS,
                {"uid": {"$in": candidates}},
                limit=self.page_limit,
                extra_params={"include_marketplace_extensions": "true"},
            ))
        except FetchError as e:
            self.log.warning(f"Could not resolve marketplace extensions, keeping all as extensions: {e}")
            return bundle

        by_uid = {r.get("uid"): r for r in records}
        extensions = set()
        for uid in candidates:
            record = by_uid.get(uid)
            if record and record.get("app_uid") and record.get("app_installation_uid"):
                bundle.marketplace_apps.add(record["app_installation_uid"])
            else:
                if record is None:
                    self.log.debug(f"Extension {uid} not returned by lookup, keeping as extension")
                extensions.add(uid)

        bundle.extensions = extensions
        return bundle

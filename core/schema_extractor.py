"""
Schema Dependency Extractor — Collects the uids a schema depends on.

Walks one schema tree and records four kinds of dependency:

  global_fields              global_field fields (reference_to)
  extensions                 any field with extension_uid, rich-text plugins
  taxonomies                 taxonomy fields (taxonomies[].taxonomy_uid)
  referenced_content_types   reference fields and rich-text fields that embed
                             entries (reference_to, excluding "sys_assets")

The walk follows the static shape of one schema document, which is finite
and acyclic, so it keeps no visited set. Cycles between content types are
handled by the referenced content type resolver.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Set

from .schema_fields import (
    BlocksField,
    Field,
    GlobalFieldRef,
    GroupField,
    LeafField,
    ReferenceField,
    RichTextField,
    TaxonomyField,
    parse_schema,
)

SYS_ASSETS = "sys_assets"


@dataclass
class DependencyBundle:
    """Dependency uids gathered during one resolution pass."""
    global_fields: Set[str] = field(default_factory=set)
    extensions: Set[str] = field(default_factory=set)
    taxonomies: Set[str] = field(default_factory=set)
    referenced_content_types: Set[str] = field(default_factory=set)
    marketplace_apps: Set[str] = field(default_factory=set)

    def merge(self, other: "DependencyBundle") -> "DependencyBundle":
        self.global_fields |= other.global_fields
        self.extensions |= other.extensions
        self.taxonomies |= other.taxonomies
        self.referenced_content_types |= other.referenced_content_types
        self.marketplace_apps |= other.marketplace_apps
        return self

    def is_empty(self) -> bool:
        return not (
            self.global_fields or self.extensions or self.taxonomies
            or self.referenced_content_types or self.marketplace_apps
        )

    def summary(self) -> Dict[str, int]:
        return {
            "global_fields": len(self.global_fields),
            "extensions": len(self.extensions),
            "marketplace_apps": len(self.marketplace_apps),
            "taxonomies": len(self.taxonomies),
            "referenced_content_types": len(self.referenced_content_types),
        }


class SchemaDependencyExtractor:
    """Extracts dependency uids from content type and global field schemas."""

    def extract(self, raw_schema: Any) -> DependencyBundle:
        """Extract dependencies from one raw schema list."""
        bundle = DependencyBundle()
        self._walk(parse_schema(raw_schema), bundle)
        return bundle

    def extract_from_records(self, records: Iterable[Dict[str, Any]]) -> DependencyBundle:
        """Union of the dependencies of every record's schema."""
        bundle = DependencyBundle()
        for record in records:
            if isinstance(record, dict) and record.get("schema"):
                bundle.merge(self.extract(record["schema"]))
        return bundle

    def referenced_content_types(self, records: Iterable[Dict[str, Any]]) -> Set[str]:
        return self.extract_from_records(records).referenced_content_types

    def _walk(self, fields: List[Field], bundle: DependencyBundle) -> None:
        for f in fields:
            if f.extension_uid:
                bundle.extensions.add(f.extension_uid)

            if isinstance(f, GroupField):
                self._walk(f.schema, bundle)
            elif isinstance(f, BlocksField):
                for block in f.blocks:
                    if block.reference_to:
                        bundle.global_fields.add(block.reference_to)
                    self._walk(block.schema, bundle)
            elif isinstance(f, GlobalFieldRef):
                if f.reference_to:
                    bundle.global_fields.add(f.reference_to)
                self._walk(f.schema, bundle)
            elif isinstance(f, ReferenceField):
                self._add_references(f.reference_to, bundle)
            elif isinstance(f, RichTextField):
                bundle.extensions.update(f.plugins)
                if f.embeds_entries:
                    self._add_references(f.reference_to, bundle)
            elif isinstance(f, TaxonomyField):
                bundle.taxonomies.update(f.taxonomy_uids)
            elif isinstance(f, LeafField):
                continue
            else:
                raise TypeError(f"Unhandled schema field kind: {type(f).__name__}")

    @staticmethod
    def _add_references(reference_to: List[str], bundle: DependencyBundle) -> None:
        for ref in reference_to:
            if ref != SYS_ASSETS:
                bundle.referenced_content_types.add(ref)

"""
Schema Fields — Typed view of a content type (or global field) schema.

Raw schemas are nested lists of dicts keyed by "data_type". parse_schema()
turns them into one of a small set of field kinds so the dependency walker
can dispatch on the kind instead of probing dict keys:

  GroupField        data_type "group"        -> nested schema
  BlocksField       data_type "blocks"       -> named blocks, each with a schema
  GlobalFieldRef    data_type "global_field" -> reference_to (str), optional inlined schema
  ReferenceField    data_type "reference"    -> reference_to (list of content type uids)
  RichTextField     json/text with field_metadata.rich_text_type
  TaxonomyField     data_type "taxonomy"     -> taxonomy uids
  LeafField         everything else

Every kind carries extension_uid when the raw field has one.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Field:
    uid: str
    data_type: str
    extension_uid: Optional[str] = None


@dataclass
class LeafField(Field):
    pass


@dataclass
class GroupField(Field):
    schema: List[Field] = field(default_factory=list)


@dataclass
class Block:
    uid: str
    schema: List[Field] = field(default_factory=list)
    reference_to: Optional[str] = None


@dataclass
class BlocksField(Field):
    blocks: List[Block] = field(default_factory=list)


@dataclass
class GlobalFieldRef(Field):
    reference_to: Optional[str] = None
    schema: List[Field] = field(default_factory=list)


@dataclass
class ReferenceField(Field):
    reference_to: List[str] = field(default_factory=list)


@dataclass
class RichTextField(Field):
    embeds_entries: bool = False
    reference_to: List[str] = field(default_factory=list)
    plugins: List[str] = field(default_factory=list)


@dataclass
class TaxonomyField(Field):
    taxonomy_uids: List[str] = field(default_factory=list)


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _string_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _parse_blocks(raw_blocks: Any) -> List[Block]:
    """Blocks arrive either as a list of block dicts or a dict keyed by block name."""
    if isinstance(raw_blocks, dict):
        items = [dict(value or {}, uid=(value or {}).get("uid", key)) for key, value in raw_blocks.items()]
    else:
        items = [b for b in _as_list(raw_blocks) if isinstance(b, dict)]

    return [
        Block(
            uid=item.get("uid", ""),
            schema=parse_schema(item.get("schema")),
            reference_to=_string_or_none(item.get("reference_to")),
        )
        for item in items
    ]


def parse_field(raw: Dict[str, Any]) -> Field:
    """Convert one raw schema field dict into its typed kind."""
    data_type = raw.get("data_type", "")
    uid = raw.get("uid", "")
    extension_uid = _string_or_none(raw.get("extension_uid"))
    metadata = raw.get("field_metadata") or {}

    if data_type == "group":
        return GroupField(uid, data_type, extension_uid, schema=parse_schema(raw.get("schema")))

    if data_type == "blocks":
        return BlocksField(uid, data_type, extension_uid, blocks=_parse_blocks(raw.get("blocks")))

    if data_type == "global_field":
        return GlobalFieldRef(
            uid, data_type, extension_uid,
            reference_to=_string_or_none(raw.get("reference_to")),
            schema=parse_schema(raw.get("schema")),
        )

    if data_type == "reference":
        return ReferenceField(
            uid, data_type, extension_uid,
            reference_to=[r for r in _as_list(raw.get("reference_to")) if isinstance(r, str)],
        )

    if data_type == "taxonomy":
        return TaxonomyField(
            uid, data_type, extension_uid,
            taxonomy_uids=[
                t["taxonomy_uid"]
                for t in _as_list(raw.get("taxonomies"))
                if isinstance(t, dict) and t.get("taxonomy_uid")
            ],
        )

    if data_type in ("json", "text") and metadata.get("rich_text_type"):
        return RichTextField(
            uid, data_type, extension_uid,
            embeds_entries=bool(metadata.get("embed_entry")),
            reference_to=[r for r in _as_list(raw.get("reference_to")) if isinstance(r, str)],
            plugins=[p for p in _as_list(raw.get("plugins")) if isinstance(p, str)],
        )

    return LeafField(uid, data_type, extension_uid)


def parse_schema(raw_schema: Any) -> List[Field]:
    """Convert a raw schema list; anything that is not a list yields an empty schema."""
    return [parse_field(f) for f in _as_list(raw_schema) if isinstance(f, dict)]

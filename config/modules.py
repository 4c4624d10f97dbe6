"""
Module definitions — one table row per exportable module.

Every behaviour that differs between modules (API endpoint, response key,
on-disk directory, queryability, prerequisites, supported query fields) is
looked up here instead of being branched on by module name. Adding a module
means adding a row to MODULE_DEFINITIONS.

Module groups:
  GENERAL_MODULES     Always exported, no dependency logic
  QUERYABLE_MODULES   May appear as top-level keys of a user query
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Module(str, Enum):
    """Exportable content categories."""
    STACK = "stack"
    LOCALES = "locales"
    ENVIRONMENTS = "environments"
    CONTENT_TYPES = "content-types"
    GLOBAL_FIELDS = "global-fields"
    EXTENSIONS = "extensions"
    ENTRIES = "entries"
    ASSETS = "assets"
    WEBHOOKS = "webhooks"
    WORKFLOWS = "workflows"
    CUSTOM_ROLES = "custom-roles"
    LABELS = "labels"
    TAXONOMIES = "taxonomies"
    MARKETPLACE_APPS = "marketplace-apps"
    PERSONALIZE = "personalize"


VALID_OPERATORS = [
    "$eq", "$ne", "$lt", "$lte", "$gt", "$gte",
    "$in", "$nin", "$exists", "$regex", "$all",
    "$and", "$or", "$not", "$nor",
]

_AUDIT_FIELDS = ["created_at", "updated_at", "created_by", "updated_by"]


@dataclass(frozen=True)
class ModuleDefinition:
    """Static description of one module.

    Attributes:
        dir_name: Directory under <export_dir>/<branch>/ holding the module's files.
        file_name: Aggregate file written for the module.
        endpoint: API path relative to the host (None when not fetched from the CMA).
        response_key: Key holding the item list in a query response.
        item_key: Key holding the single item in a fetch-by-uid response.
        queryable: Whether a user query may target the module directly.
        per_record_files: Whether each item is also written to <uid>.json.
        supported_fields: Non-operator keys a query on this module may use.
        supported_operators: Operator keys a query on this module may use.
        query_params: Extra request parameters sent with every query.
    """
    dir_name: str
    file_name: str
    endpoint: Optional[str]
    response_key: Optional[str]
    item_key: Optional[str] = None
    queryable: bool = False
    per_record_files: bool = False
    supported_fields: Tuple[str, ...] = ()
    supported_operators: Tuple[str, ...] = tuple(VALID_OPERATORS)
    query_params: Dict[str, object] = field(default_factory=dict)


MODULE_DEFINITIONS: Dict[Module, ModuleDefinition] = {
    Module.STACK: ModuleDefinition(
        dir_name="stack",
        file_name="settings.json",
        endpoint="/stacks",
        response_key=None,
        item_key="stack",
        supported_fields=("uid", "name", "description", "created_at", "updated_at"),
    ),
    Module.LOCALES: ModuleDefinition(
        dir_name="locales",
        file_name="locales.json",
        endpoint="/locales",
        response_key="locales",
        item_key="locale",
        supported_fields=("code", "name", "uid", *_AUDIT_FIELDS),
    ),
    Module.ENVIRONMENTS: ModuleDefinition(
        dir_name="environments",
        file_name="environments.json",
        endpoint="/environments",
        response_key="environments",
        item_key="environment",
        supported_fields=("uid", "name", *_AUDIT_FIELDS),
    ),
    Module.CONTENT_TYPES: ModuleDefinition(
        dir_name="content_types",
        file_name="schema.json",
        endpoint="/content_types",
        response_key="content_types",
        item_key="content_type",
        queryable=True,
        per_record_files=True,
        supported_fields=(
            "uid", "title", "description", *_AUDIT_FIELDS, "tags", "singleton",
        ),
        query_params={"include_global_field_schema": "true"},
    ),
    Module.GLOBAL_FIELDS: ModuleDefinition(
        dir_name="global_fields",
        file_name="globalfields.json",
        endpoint="/global_fields",
        response_key="global_fields",
        item_key="global_field",
        per_record_files=True,
        supported_fields=("uid", "title", "description", *_AUDIT_FIELDS, "tags"),
    ),
    Module.EXTENSIONS: ModuleDefinition(
        dir_name="extensions",
        file_name="extensions.json",
        endpoint="/extensions",
        response_key="extensions",
        item_key="extension",
        per_record_files=True,
        supported_fields=("uid", "title", "type", *_AUDIT_FIELDS, "tags"),
    ),
    Module.ENTRIES: ModuleDefinition(
        dir_name="entries",
        file_name="index.json",
        endpoint="/content_types/{content_type_uid}/entries",
        response_key="entries",
        item_key="entry",
        supported_fields=(
            "uid", "title", "locale", *_AUDIT_FIELDS, "tags", "content_type_uid",
        ),
        query_params={"include_publish_details": "true"},
    ),
    Module.ASSETS: ModuleDefinition(
        dir_name="assets",
        file_name="assets.json",
        endpoint="/assets",
        response_key="assets",
        item_key="asset",
        supported_fields=(
            "uid", "title", "filename", "content_type", "file_size", *_AUDIT_FIELDS, "tags",
        ),
        query_params={"include_dimension": "true"},
    ),
    Module.WEBHOOKS: ModuleDefinition(
        dir_name="webhooks",
        file_name="webhooks.json",
        endpoint="/webhooks",
        response_key="webhooks",
        item_key="webhook",
        supported_fields=("uid", "name", "channels", *_AUDIT_FIELDS),
    ),
    Module.WORKFLOWS: ModuleDefinition(
        dir_name="workflows",
        file_name="workflows.json",
        endpoint="/workflows",
        response_key="workflows",
        item_key="workflow",
        supported_fields=("uid", "name", "description", *_AUDIT_FIELDS),
    ),
    Module.CUSTOM_ROLES: ModuleDefinition(
        dir_name="custom-roles",
        file_name="custom-roles.json",
        endpoint="/roles",
        response_key="roles",
        item_key="role",
        supported_fields=("uid", "name", "description", *_AUDIT_FIELDS),
    ),
    Module.LABELS: ModuleDefinition(
        dir_name="labels",
        file_name="labels.json",
        endpoint="/labels",
        response_key="labels",
        item_key="label",
        supported_fields=("uid", "name", *_AUDIT_FIELDS),
    ),
    Module.TAXONOMIES: ModuleDefinition(
        dir_name="taxonomies",
        file_name="taxonomies.json",
        endpoint="/taxonomies",
        response_key="taxonomies",
        item_key="taxonomy",
        per_record_files=True,
        supported_fields=("uid", "name", "description", *_AUDIT_FIELDS),
    ),
    Module.MARKETPLACE_APPS: ModuleDefinition(
        dir_name="marketplace_apps",
        file_name="marketplace_apps.json",
        endpoint="/installations",
        response_key="data",
        supported_fields=("uid", "name", "description", "created_at", "updated_at"),
    ),
    Module.PERSONALIZE: ModuleDefinition(
        dir_name="personalize",
        file_name="personalize.json",
        endpoint=None,
        response_key=None,
        supported_fields=("uid", "name", "created_at", "updated_at"),
    ),
}

# Prerequisites of each module. Acyclic by construction.
MODULE_DEPENDENCIES: Dict[Module, List[Module]] = {
    Module.STACK: [],
    Module.LOCALES: [Module.STACK],
    Module.ENVIRONMENTS: [Module.STACK, Module.LOCALES],
    Module.CONTENT_TYPES: [Module.STACK, Module.LOCALES, Module.ENVIRONMENTS],
    Module.EXTENSIONS: [Module.STACK, Module.LOCALES, Module.ENVIRONMENTS, Module.CONTENT_TYPES],
    Module.GLOBAL_FIELDS: [
        Module.STACK, Module.LOCALES, Module.ENVIRONMENTS, Module.CONTENT_TYPES,
        Module.EXTENSIONS,
    ],
    Module.ENTRIES: [
        Module.STACK, Module.LOCALES, Module.ENVIRONMENTS, Module.CONTENT_TYPES,
        Module.EXTENSIONS, Module.GLOBAL_FIELDS,
    ],
    Module.ASSETS: [
        Module.STACK, Module.LOCALES, Module.ENVIRONMENTS, Module.CONTENT_TYPES,
        Module.EXTENSIONS, Module.GLOBAL_FIELDS, Module.ENTRIES,
    ],
    Module.WEBHOOKS: [
        Module.STACK, Module.LOCALES, Module.ENVIRONMENTS, Module.CONTENT_TYPES,
        Module.EXTENSIONS, Module.GLOBAL_FIELDS, Module.ENTRIES, Module.ASSETS,
    ],
    Module.WORKFLOWS: [
        Module.STACK, Module.LOCALES, Module.ENVIRONMENTS, Module.CONTENT_TYPES,
        Module.EXTENSIONS, Module.GLOBAL_FIELDS, Module.ENTRIES, Module.ASSETS,
        Module.WEBHOOKS,
    ],
    Module.CUSTOM_ROLES: [
        Module.STACK, Module.LOCALES, Module.ENVIRONMENTS, Module.CONTENT_TYPES,
        Module.EXTENSIONS, Module.GLOBAL_FIELDS, Module.ENTRIES, Module.ASSETS,
        Module.WEBHOOKS, Module.WORKFLOWS,
    ],
    Module.LABELS: [
        Module.STACK, Module.LOCALES, Module.ENVIRONMENTS, Module.CONTENT_TYPES,
        Module.EXTENSIONS, Module.GLOBAL_FIELDS, Module.ENTRIES, Module.ASSETS,
        Module.WEBHOOKS, Module.WORKFLOWS, Module.CUSTOM_ROLES,
    ],
    Module.TAXONOMIES: [
        Module.STACK, Module.LOCALES, Module.ENVIRONMENTS, Module.CONTENT_TYPES,
        Module.EXTENSIONS, Module.GLOBAL_FIELDS, Module.ENTRIES, Module.ASSETS,
        Module.WEBHOOKS, Module.WORKFLOWS, Module.CUSTOM_ROLES, Module.LABELS,
    ],
    Module.MARKETPLACE_APPS: [
        Module.STACK, Module.LOCALES, Module.ENVIRONMENTS, Module.CONTENT_TYPES,
        Module.EXTENSIONS, Module.GLOBAL_FIELDS, Module.ENTRIES, Module.ASSETS,
        Module.WEBHOOKS, Module.WORKFLOWS, Module.CUSTOM_ROLES, Module.LABELS,
        Module.TAXONOMIES,
    ],
    Module.PERSONALIZE: [
        Module.STACK, Module.LOCALES, Module.ENVIRONMENTS, Module.CONTENT_TYPES,
        Module.EXTENSIONS, Module.GLOBAL_FIELDS, Module.ENTRIES, Module.ASSETS,
        Module.WEBHOOKS, Module.WORKFLOWS, Module.CUSTOM_ROLES, Module.LABELS,
        Module.TAXONOMIES, Module.MARKETPLACE_APPS,
    ],
}

GENERAL_MODULES = [Module.STACK, Module.LOCALES, Module.ENVIRONMENTS]
QUERYABLE_MODULES = [m for m, d in MODULE_DEFINITIONS.items() if d.queryable]


def get_definition(module: Module) -> ModuleDefinition:
    return MODULE_DEFINITIONS[Module(module)]

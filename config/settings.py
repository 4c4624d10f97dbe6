"""
Settings — Default configuration values for the query-based stack exporter.

This module provides the DEFAULT_SETTINGS dict that ExportConfig uses as
fallback values when neither CLI flags, an external config file, nor
environment variables supply a value.

Configuration precedence (highest to lowest):
  1. CLI flags (--stack-api-key, --branch, --skip-references, ...)
  2. External JSON config file (--config)
  3. Environment variables (from .env file)
  4. DEFAULT_SETTINGS (this file)

Settings reference:
  HOST                      Content management API base URL
  DEVELOPER_HUB_URL         Marketplace (developer hub) API base URL
  EXPORT_DIR                Root directory for exported content (default: ./export)
  MAX_CT_REFERENCE_DEPTH    Maximum passes of the referenced content type loop
  ASSET_BATCH_SIZE          Assets fetched per batch
  EXPORT_DELAY_SECONDS      Settling delay between entry export and asset scan
  PAGE_LIMIT                Items requested per page
  MAX_QUERY_DEPTH           Maximum nesting depth of a user query
  MAX_ARRAY_SIZE            Maximum length of an array operand in a user query
  REQUEST_TIMEOUT           Seconds before an API request is abandoned
  EXPORT_BACKEND            "api" (direct calls) or "command" (external export command)
  EXPORT_COMMAND            Executable used by the "command" backend
  METADATA_FILE_NAME        Name of the query metadata sidecar file
"""

DEFAULT_SETTINGS = {
    "HOST": "https://api.contentstack.io/v3",
    "DEVELOPER_HUB_URL": "https://developerhub-api.contentstack.com",
    "EXPORT_DIR": "./export",
    "BRANCH_NAME": "",
    "MAX_CT_REFERENCE_DEPTH": 20,
    "ASSET_BATCH_SIZE": 100,
    "EXPORT_DELAY_SECONDS": 5.0,
    "PAGE_LIMIT": 100,
    "MAX_QUERY_DEPTH": 5,
    "MAX_ARRAY_SIZE": 1000,
    "REQUEST_TIMEOUT": 30,
    "EXPORT_BACKEND": "api",
    "EXPORT_COMMAND": "csdx cm:stacks:export",
    "METADATA_FILE_NAME": "_query-meta.json",
    "DEBUG": False,
}

EXPORT_BACKENDS = ["api", "command"]

# Environment variable consulted for each settings key
ENV_VARS = {
    "STACK_API_KEY": "STACK_API_KEY",
    "MANAGEMENT_TOKEN": "MANAGEMENT_TOKEN",
    "HOST": "CMA_HOST",
    "DEVELOPER_HUB_URL": "DEVELOPER_HUB_URL",
    "EXPORT_DIR": "EXPORT_DIR",
    "BRANCH_NAME": "BRANCH_NAME",
    "MAX_CT_REFERENCE_DEPTH": "MAX_CT_REFERENCE_DEPTH",
    "ASSET_BATCH_SIZE": "ASSET_BATCH_SIZE",
    "EXPORT_DELAY_SECONDS": "EXPORT_DELAY_SECONDS",
    "PAGE_LIMIT": "PAGE_LIMIT",
    "MAX_QUERY_DEPTH": "MAX_QUERY_DEPTH",
    "MAX_ARRAY_SIZE": "MAX_ARRAY_SIZE",
    "REQUEST_TIMEOUT": "REQUEST_TIMEOUT",
    "EXPORT_BACKEND": "EXPORT_BACKEND",
    "EXPORT_COMMAND": "EXPORT_COMMAND",
    "DEBUG": "DEBUG",
}

# Token aliases resolve to MANAGEMENT_TOKEN_<ALIAS> / STACK_API_KEY_<ALIAS>
TOKEN_ALIAS_PREFIX = "MANAGEMENT_TOKEN_"
STACK_KEY_ALIAS_PREFIX = "STACK_API_KEY_"

"""
Configuration package for the query-based stack exporter.

  settings.py   DEFAULT_SETTINGS and environment variable names
  modules.py    Module enum, per-module descriptor table and dependency DAG
"""

from .settings import DEFAULT_SETTINGS, ENV_VARS, EXPORT_BACKENDS
from .modules import (
    Module,
    ModuleDefinition,
    MODULE_DEFINITIONS,
    MODULE_DEPENDENCIES,
    GENERAL_MODULES,
    QUERYABLE_MODULES,
    VALID_OPERATORS,
    get_definition,
)

"""
Export configuration — the immutable settings value shared by every component.

Values are resolved once at start-up from CLI overrides, an optional external
JSON config file, environment variables (loaded from .env via python-dotenv)
and config.DEFAULT_SETTINGS, in that order of precedence. The resulting
ExportConfig is frozen; components receive it through their constructors and
never mutate it.

Typical usage:
    config = load_export_config(env_file="./.env", overrides={"query_input": "..."})
    errors = config.validate()
    if errors:
        ...
"""

import json
import logging
import os
import uuid
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from config import DEFAULT_SETTINGS, ENV_VARS, EXPORT_BACKENDS
from config.settings import TOKEN_ALIAS_PREFIX, STACK_KEY_ALIAS_PREFIX

from .errors import ParseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExportConfig:
    """Resolved settings for one export run."""
    stack_api_key: str = ""
    management_token: str = ""
    query_input: str = ""
    host: str = DEFAULT_SETTINGS["HOST"]
    developer_hub_url: str = DEFAULT_SETTINGS["DEVELOPER_HUB_URL"]
    export_dir: str = DEFAULT_SETTINGS["EXPORT_DIR"]
    branch_name: str = DEFAULT_SETTINGS["BRANCH_NAME"]
    skip_references: bool = False
    skip_dependencies: bool = False
    secured_assets: bool = False
    external_config_path: Optional[str] = None
    management_token_alias: str = ""
    max_ct_reference_depth: int = DEFAULT_SETTINGS["MAX_CT_REFERENCE_DEPTH"]
    asset_batch_size: int = DEFAULT_SETTINGS["ASSET_BATCH_SIZE"]
    export_delay_seconds: float = DEFAULT_SETTINGS["EXPORT_DELAY_SECONDS"]
    page_limit: int = DEFAULT_SETTINGS["PAGE_LIMIT"]
    max_query_depth: int = DEFAULT_SETTINGS["MAX_QUERY_DEPTH"]
    max_array_size: int = DEFAULT_SETTINGS["MAX_ARRAY_SIZE"]
    request_timeout: int = DEFAULT_SETTINGS["REQUEST_TIMEOUT"]
    export_backend: str = DEFAULT_SETTINGS["EXPORT_BACKEND"]
    export_command: str = DEFAULT_SETTINGS["EXPORT_COMMAND"]
    metadata_file_name: str = DEFAULT_SETTINGS["METADATA_FILE_NAME"]
    debug: bool = DEFAULT_SETTINGS["DEBUG"]

    def validate(self) -> List[str]:
        """Return a list of configuration errors (empty when valid)."""
        errors = []
        if not self.stack_api_key:
            errors.append("STACK_API_KEY is required (--stack-api-key or --alias)")
        if not self.management_token and not (
            self.export_backend == "command" and self.management_token_alias
        ):
            errors.append("MANAGEMENT_TOKEN is required (--management-token or --alias)")
        if not self.query_input:
            errors.append("A query is required (--query)")
        if self.asset_batch_size < 1:
            errors.append("ASSET_BATCH_SIZE must be positive")
        if self.page_limit < 1:
            errors.append("PAGE_LIMIT must be positive")
        if self.max_ct_reference_depth < 1:
            errors.append("MAX_CT_REFERENCE_DEPTH must be positive")
        if self.export_backend not in EXPORT_BACKENDS:
            errors.append(
                f"EXPORT_BACKEND must be one of: {', '.join(EXPORT_BACKENDS)}"
            )
        return errors

    def with_overrides(self, **changes: Any) -> "ExportConfig":
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)


@dataclass(frozen=True)
class RunContext:
    """Correlation metadata attached to every log record of one run."""
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    stack_api_key: str = ""
    branch: str = ""

    def as_extra(self) -> Dict[str, str]:
        return {"run_id": self.run_id, "stack": self.stack_api_key, "branch": self.branch or "-"}


class RunLoggerAdapter(logging.LoggerAdapter):
    """Prefixes messages with the run id so interleaved runs stay readable."""

    def process(self, msg, kwargs):
        kwargs.setdefault("extra", {}).update(self.extra)
        return f"[{self.extra['run_id']}] {msg}", kwargs


def get_run_logger(name: str, context: Optional[RunContext] = None) -> logging.LoggerAdapter:
    context = context or RunContext()
    return RunLoggerAdapter(logging.getLogger(name), context.as_extra())


def _coerce(value: Any, default: Any) -> Any:
    """Convert an environment/config string to the type of the default value."""
    if value is None:
        return default
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("1", "true", "yes", "on")
    if isinstance(default, int) and not isinstance(default, bool):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return value


def _read_external_config(path: str) -> Dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        raise ParseError(f"External config file not found: {path}")
    try:
        with open(config_path, encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        raise ParseError(f"Failed to parse external config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ParseError(f"External config file {path} must contain a JSON object")
    return data


def resolve_alias(alias: str) -> Dict[str, str]:
    """Look up a management token alias in the environment.

    Returns a dict with "management_token" and, when configured,
    "stack_api_key". Returns an empty dict if the alias is unknown.
    """
    suffix = alias.upper().replace("-", "_")
    token = os.getenv(f"{TOKEN_ALIAS_PREFIX}{suffix}", "")
    if not token:
        return {}
    resolved = {"management_token": token}
    stack_key = os.getenv(f"{STACK_KEY_ALIAS_PREFIX}{suffix}", "")
    if stack_key:
        resolved["stack_api_key"] = stack_key
    return resolved


def load_export_config(
    env_file: str = "./.env",
    overrides: Optional[Dict[str, Any]] = None,
    config_path: Optional[str] = None,
) -> ExportConfig:
    """Build an ExportConfig from defaults, environment, external config and overrides.

    Args:
        env_file: Path to a .env file. Loaded via python-dotenv when it exists.
        overrides: Values from CLI flags. None values are ignored.
        config_path: Optional external JSON config file with snake_case keys.

    Raises:
        ParseError: If the external config file is missing or not valid JSON.
    """
    env_path = Path(env_file)
    if env_path.exists():
        load_dotenv(env_path)
        logger.info(f"Loaded configuration from: {env_file}")
    else:
        logger.debug(f"{env_file} not found, using defaults/environment")

    defaults = ExportConfig()
    values: Dict[str, Any] = {}

    for f in fields(ExportConfig):
        settings_key = f.name.upper()
        env_name = ENV_VARS.get(settings_key)
        if env_name is None:
            continue
        raw = os.getenv(env_name)
        if raw is not None and raw != "":
            values[f.name] = _coerce(raw, getattr(defaults, f.name))

    if config_path:
        known = {f.name for f in fields(ExportConfig)}
        for key, raw in _read_external_config(config_path).items():
            if key in known:
                values[key] = _coerce(raw, getattr(defaults, key))
            else:
                logger.warning(f"Ignoring unknown key in external config: {key}")
        values["external_config_path"] = config_path

    for key, raw in (overrides or {}).items():
        if raw is not None:
            values[key] = raw

    return replace(defaults, **values)

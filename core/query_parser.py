"""
Query Parser — Reads and validates the user's structured export query.

A query is a JSON object of the form:

    {"modules": {"content-types": {"title": {"$in": ["Blog", "Author"]}}}}

It may be supplied inline or as a path to a .json file. Only modules marked
queryable in config.modules may appear under "modules"; everything else is
reached through dependency resolution.

Validation runs in two layers:
  - basic: the query is an object with a non-empty "modules" map whose keys
    are all user-queryable modules
  - strict: additionally checks every $-operator against the module's
    supported operators, every field key against the module's supported
    fields, the nesting depth and the size of array operands
"""

import json
import logging
import os
from typing import Any, Dict, List, Optional

from config import Module, QUERYABLE_MODULES, VALID_OPERATORS, get_definition

from .errors import ParseError, QueryTooComplexError, ValidationError

logger = logging.getLogger(__name__)

QUERY_FILE_EXTENSIONS = (".json",)
LOGICAL_OPERATORS = ("$and", "$or", "$nor")


def modules_in_query(query: Dict[str, Any]) -> List[Module]:
    """Return the queried modules, in the order they appear in the query."""
    return [Module(name) for name in query.get("modules", {})]


class QueryParser:
    """Parses query input and validates it against the module table."""

    def __init__(self, max_query_depth: int = 5, max_array_size: int = 1000,
                 queryable_modules: Optional[List[Module]] = None, log=None):
        self.max_query_depth = max_query_depth
        self.max_array_size = max_array_size
        self.queryable_modules = list(queryable_modules or QUERYABLE_MODULES)
        self.log = log or logger

    @classmethod
    def from_config(cls, config, log=None) -> "QueryParser":
        return cls(config.max_query_depth, config.max_array_size, log=log)

    def parse(self, query_input: str, strict: bool = True) -> Dict[str, Any]:
        """Parse and validate a query string or file path.

        Raises:
            ParseError: If the input is empty, the file is missing/unreadable,
                or the text is not valid JSON.
            ValidationError: If the query violates the query rules.
        """
        query = self.parse_input(query_input)
        if strict:
            self.validate_strict(query)
        else:
            self.validate(query)
        self.log.info(f"Query parsed and validated: {', '.join(query['modules'])}")
        return query

    def parse_input(self, query_input: str) -> Any:
        if not query_input or not query_input.strip():
            raise ParseError("Query cannot be empty")

        candidate = query_input.strip()
        if candidate.lower().endswith(QUERY_FILE_EXTENSIONS):
            return self._parse_file(candidate)
        return self._parse_string(candidate)

    def _parse_file(self, file_path: str) -> Any:
        if not os.path.isfile(file_path):
            raise ParseError(f"Query file not found: {file_path}")
        try:
            with open(file_path, encoding="utf-8") as fh:
                content = fh.read()
        except OSError as e:
            raise ParseError(f"Failed to read query file: {e}") from e
        try:
            return json.loads(content)
        except json.JSONDecodeError as e:
            raise ParseError(f"Failed to parse query file: {e}") from e

    def _parse_string(self, query_string: str) -> Any:
        try:
            return json.loads(query_string)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON query: {e}") from e

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self, query: Any) -> None:
        """Check the query envelope and that every module is user-queryable."""
        if not isinstance(query, dict):
            raise ValidationError("Query must be a valid JSON object")

        modules = query.get("modules")
        if not isinstance(modules, dict):
            raise ValidationError('Query must contain a "modules" object')
        if not modules:
            raise ValidationError("Query must contain at least one module")

        allowed = [m.value for m in self.queryable_modules]
        for module_name in modules:
            if module_name not in allowed:
                raise ValidationError(
                    f'Module "{module_name}" is not queryable. '
                    f"Supported modules: {', '.join(allowed)}"
                )

    def validate_strict(self, query: Any) -> None:
        """Basic validation plus operator, field, depth and array-size checks."""
        self.validate(query)

        for module_name, module_query in query["modules"].items():
            if not isinstance(module_query, dict):
                raise ValidationError(f'Query for module "{module_name}" must be an object')

            definition = get_definition(Module(module_name))
            operators = list(definition.supported_operators)
            self._validate_operators(module_query, operators)
            self._validate_fields(module_query, list(definition.supported_fields), module_name)

        self._validate_complexity(query, 0)

    def _validate_operators(self, node: Any, supported: List[str]) -> None:
        if isinstance(node, dict):
            for key, value in node.items():
                if key.startswith("$") and key not in supported:
                    raise ValidationError(
                        f"Invalid query operator: {key}. "
                        f"Supported operators: {', '.join(supported)}"
                    )
                self._validate_operators(value, supported)
        elif isinstance(node, list):
            for item in node:
                self._validate_operators(item, supported)

    def _validate_fields(self, module_query: Dict[str, Any], supported: List[str], module_name: str) -> None:
        for key, value in module_query.items():
            if key in LOGICAL_OPERATORS and isinstance(value, list):
                for clause in value:
                    if isinstance(clause, dict):
                        self._validate_fields(clause, supported, module_name)
                continue
            if key.startswith("$"):
                continue
            if key not in supported:
                raise ValidationError(
                    f'Invalid query field "{key}" for module "{module_name}". '
                    f"Supported fields: {', '.join(supported)}"
                )
            # Field-level conditions may use any default operator
            self._validate_operators(value, VALID_OPERATORS)

    def _validate_complexity(self, node: Any, depth: int) -> None:
        if depth > self.max_query_depth:
            raise QueryTooComplexError(
                f"Query depth exceeds maximum allowed depth of {self.max_query_depth}"
            )

        if isinstance(node, dict):
            children = list(node.values())
        elif isinstance(node, list):
            if len(node) > self.max_array_size:
                raise QueryTooComplexError(
                    f"Array size {len(node)} exceeds maximum allowed size of {self.max_array_size}"
                )
            children = node
        else:
            return

        for child in children:
            if isinstance(child, (dict, list)):
                self._validate_complexity(child, depth + 1)

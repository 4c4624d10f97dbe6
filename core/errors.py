"""
Exception types raised by the export pipeline.

  QueryExportError          Base class; run.py catches it and exits non-zero
  ParseError                Query text/file could not be read or parsed
  ValidationError           Query targets a non-queryable module, unknown field or operator
  QueryTooComplexError      Query nesting depth or array operand size over the limit
  CircularDependencyError   The static module dependency map contains a cycle
  FetchError                Any failure talking to the content management API
"""

from typing import Optional


class QueryExportError(Exception):
    """Base class for all export pipeline errors."""
    pass


class ParseError(QueryExportError):
    """Raised when the query input cannot be located, read or parsed."""
    pass


class ValidationError(QueryExportError):
    """Raised when a parsed query violates the query rules."""
    pass


class QueryTooComplexError(ValidationError):
    """Raised when a query exceeds the configured depth or array size."""
    pass


class CircularDependencyError(QueryExportError):
    """Raised when the module dependency map is not acyclic."""

    def __init__(self, module: str):
        self.module = module
        super().__init__(f"Circular dependency detected involving {module}")


class FetchError(QueryExportError):
    """Raised when the content management API call fails."""

    def __init__(self, message: str, module: Optional[str] = None, status_code: Optional[int] = None):
        self.module = module
        self.status_code = status_code
        super().__init__(message)

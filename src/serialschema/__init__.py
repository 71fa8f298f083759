"""Serializable type schema extraction."""

from __future__ import annotations

from .attributes import (
    find_by_full_name,
    find_by_short_name,
    find_by_short_name_with_override_chain,
    read_named_argument,
)
from .enumerator import named_types
from .hierarchy import ancestors, find_ancestor_by_original_definition
from .members import all_members
from .nullability import is_optional_wrapper

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "all_members",
    "ancestors",
    "find_ancestor_by_original_definition",
    "find_by_full_name",
    "find_by_short_name",
    "find_by_short_name_with_override_chain",
    "is_optional_wrapper",
    "named_types",
    "read_named_argument",
]

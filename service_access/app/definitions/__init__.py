"""
Definitions package.

The declarative surface that produces the schema, policy and context
tables: a loader for definition documents (mappings or YAML files) and the
built-in membership and events catalog.
"""

from .loader import (
    Catalog, dump_definitions, load_definitions, load_definitions_file,
    parse_operand, parse_predicate
)
from .concerts import build_catalog

__all__ = [
    "Catalog",
    "build_catalog",
    "dump_definitions",
    "load_definitions",
    "load_definitions_file",
    "parse_operand",
    "parse_predicate",
]

"""
Module for JSON Schema validation and degree plan invariants.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Set, Tuple

import jsonschema
import networkx as nx

__all__ = [
    "ValidationError",
    "GraphInvariantError",
    "RequisiteDataError",
    "validate_json",
    "validate_plan_invariants",
    "validate_requisite_table",
    "validate_requisite_expression",
]


class ValidationError(Exception):
    """Data validation error."""

    pass


class GraphInvariantError(ValidationError):
    """Degree plan invariant error."""

    pass


class RequisiteDataError(ValidationError):
    """Malformed requisite expression or requisite table."""

    pass


# Cache for loaded schemas
_SCHEMA_CACHE: Dict[str, Dict] = {}


def _load_schema(schema_name: str) -> Dict[str, Any]:
    """
    Loads JSON Schema from file.

    Args:
        schema_name: Schema name without extension (e.g., 'DegreePlan')

    Returns:
        Dictionary with JSON Schema

    Raises:
        FileNotFoundError: If schema file is not found
        ValidationError: If schema is invalid
    """
    if schema_name in _SCHEMA_CACHE:
        return _SCHEMA_CACHE[schema_name]

    # Path to schemas relative to current file
    schema_path = Path(__file__).parent.parent / "schemas" / f"{schema_name}.schema.json"

    if not schema_path.exists():
        raise FileNotFoundError(f"JSON Schema not found: {schema_path}")

    try:
        with open(schema_path, "r", encoding="utf-8") as f:
            schema = json.load(f)

        # Check that the schema itself is valid
        jsonschema.Draft202012Validator.check_schema(schema)

        _SCHEMA_CACHE[schema_name] = schema
        return schema

    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON in schema {schema_name}: {e}")
    except jsonschema.SchemaError as e:
        raise ValidationError(f"Invalid JSON Schema {schema_name}: {e}")


def _format_error(schema_name: str, error: jsonschema.ValidationError) -> str:
    error_path = " -> ".join(str(p) for p in error.absolute_path) if error.absolute_path else "root"
    return f"Schema validation error '{schema_name}' in field '{error_path}': {error.message}"


def validate_json(data: Any, schema_name: str) -> None:
    """
    Validates data against JSON Schema.

    Args:
        data: Data to validate
        schema_name: Schema name without extension

    Raises:
        ValidationError: If data does not match the schema
    """
    schema = _load_schema(schema_name)

    try:
        jsonschema.validate(data, schema)
    except jsonschema.ValidationError as e:
        raise ValidationError(_format_error(schema_name, e))


def validate_requisite_table(table: Any) -> None:
    """
    Checks a per-term requisite table (course name -> expression).

    Raises:
        RequisiteDataError: If the table is not an object of OR/AND arrays
    """
    schema = _load_schema("RequisiteTable")
    try:
        jsonschema.validate(table, schema)
    except jsonschema.ValidationError as e:
        raise RequisiteDataError(_format_error("RequisiteTable", e))


def validate_requisite_expression(expression: Any) -> None:
    """
    Checks a single requisite expression: a list of alternatives, each a list of members.

    Raises:
        RequisiteDataError: On wrong nesting or member shape
    """
    validate_requisite_table({"_": expression})


def validate_plan_invariants(plan_data: Dict[str, Any], check_cycles: bool = True) -> None:
    """
    Checks degree plan invariants.

    Args:
        plan_data: Plan data in DegreePlan format
        check_cycles: Reject requisite cycles

    Raises:
        GraphInvariantError: If plan invariants are violated
    """
    # First validate against schema
    validate_json(plan_data, "DegreePlan")

    course_ids: Set[int] = set()
    for term in plan_data.get("terms", []):
        for course in term:
            course_id = course["id"]
            if course_id in course_ids:
                raise GraphInvariantError(f"Duplicate course ID: {course_id}")
            course_ids.add(course_id)

    edge_keys: Set[Tuple[int, int]] = set()
    edge_list: List[Tuple[int, int]] = []

    for i, edge in enumerate(plan_data.get("edges", [])):
        source = edge.get("source")
        target = edge.get("target")

        if source not in course_ids:
            raise GraphInvariantError(f"Edge {i}: source '{source}' does not exist")

        if target not in course_ids:
            raise GraphInvariantError(f"Edge {i}: target '{target}' does not exist")

        if source == target:
            raise GraphInvariantError(f"Edge {i}: requisite self-loop forbidden {source} -> {target}")

        if (source, target) in edge_keys:
            raise GraphInvariantError(f"Edge {i}: duplicate edge {source} -> {target}")

        edge_keys.add((source, target))
        edge_list.append((source, target))

    if check_cycles and edge_list:
        G = nx.DiGraph(edge_list)  # noqa: N806
        if not nx.is_directed_acyclic_graph(G):
            cycle = nx.find_cycle(G)
            path = " -> ".join(str(u) for u, _ in cycle) + f" -> {cycle[0][0]}"
            raise GraphInvariantError(f"Requisite cycle detected: {path}")

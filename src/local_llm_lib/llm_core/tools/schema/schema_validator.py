from typing import Any, Dict, Tuple

from ...exceptions import ToolValidationError
from ...logger import get_logger

logger = get_logger(__name__)

_METADATA_KEYS = ("$defs", "$schema", "$id", "title", "definitions")


class SchemaValidator:
    """
    Helper class for validating and sanitizing JSON schemas for tool parameters.

    Local models constrain function-call arguments with a grammar built from the schema,
    so schemas must be finite (no recursive refs) and as plain as possible.
    """

    @staticmethod
    def assert_no_recursive_refs(schema: Dict[str, Any]) -> None:
        """
        Rejects schemas whose local ``$ref`` chain leads back to a definition already on the chain.

        Raises:
            ToolValidationError: If a cycle is found; the message names the chain.
        """
        defs = schema.get("$defs") or schema.get("definitions") or {}

        def walk(node: Any, chain: Tuple[str, ...]) -> None:
            if isinstance(node, list):
                for item in node:
                    walk(item, chain)
                return
            if not isinstance(node, dict):
                return

            ref = node.get("$ref")
            if ref is None:
                for value in node.values():
                    walk(value, chain)
                return

            if ref in chain:
                cycle = " -> ".join(name.rsplit("/", 1)[-1] for name in chain + (ref,))
                msg = (
                    f"Recursive structure detected: {cycle}. "
                    "Recursive structures are not allowed in tool inputs. "
                    "Use parent_id, lists, or a workflow loop instead."
                )
                logger.error(msg)
                raise ToolValidationError(msg)

            target = defs.get(ref.rsplit("/", 1)[-1]) if ref.startswith("#") else None
            if target is not None:
                walk(target, chain + (ref,))

        walk(schema, ())

    @staticmethod
    def sanitize_schema(schema: Any) -> Any:
        """
        Cleans up a generated schema.
        Removes $defs, $schema, $id, title.
        Simplifies Optional fields (anyOf with null).
        Enforces additionalProperties: false for objects.

        Args:
            schema: The JSON schema to sanitize.

        Returns:
            The sanitized schema.
        """
        if not isinstance(schema, dict):
            return schema

        new_schema = {key: value for key, value in schema.items() if key not in _METADATA_KEYS}

        any_of = new_schema.get("anyOf")
        if isinstance(any_of, list):
            non_null = [option for option in any_of if not (isinstance(option, dict) and option.get("type") == "null")]
            if len(non_null) == 1 and isinstance(non_null[0], dict):
                merged = {key: value for key, value in new_schema.items() if key != "anyOf"}
                merged.update(non_null[0])
                # The parent's description wins over the inner one
                if "description" in new_schema:
                    merged["description"] = new_schema["description"]
                return SchemaValidator.sanitize_schema(merged)

        if new_schema.get("type") == "object":
            new_schema.setdefault("additionalProperties", False)

        for key, value in new_schema.items():
            if isinstance(value, dict):
                new_schema[key] = SchemaValidator.sanitize_schema(value)
            elif isinstance(value, list):
                new_schema[key] = [SchemaValidator.sanitize_schema(item) for item in value]

        return new_schema

    @staticmethod
    def normalize_input_schema(schema: Dict[str, Any]) -> Dict[str, Any]:
        """
        Turns a request-level input schema into an object schema the runtime can use.

        Declarations coming from agent frameworks are sometimes empty (``{}``) or lack a
        ``type``; both mean "an object with arbitrary properties".

        Args:
            schema: The declared input schema.

        Returns:
            An object schema with at least ``type`` and ``properties``.
        """
        normalized = dict(schema)
        normalized.setdefault("type", "object")
        if normalized["type"] == "object":
            normalized.setdefault("properties", {})
        return normalized

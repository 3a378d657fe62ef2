"""Tool contract and argument checking.

A tool is a named capability the LLM can ask for in a ``TOOL:`` block.
Arguments arrive as a JSON object and are checked against the tool's
``parameters`` schema (a small JSON Schema subset: type, enum, bounds,
lengths, required, additionalProperties, items) before ``execute`` runs.
"""

from abc import ABC, abstractmethod
from typing import Any

from orderbot.providers.llm.base import ToolDefinition

_PY_TYPES: dict[str, type | tuple[type, ...]] = {
    "string": str,
    "integer": int,
    "number": (int, float),
    "boolean": bool,
    "array": list,
    "object": dict,
}


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def check_schema(value: Any, schema: dict[str, Any], path: str = "") -> list[str]:
    """Problems with ``value`` under ``schema``; empty when it conforms."""
    kind = schema.get("type")
    label = path or "arguments"

    expected = _PY_TYPES.get(kind)
    # bool is an int subclass; JSON true is not a number
    if expected is not None and (
        not isinstance(value, expected) or (kind in ("integer", "number") and isinstance(value, bool))
    ):
        return [f"{label} should be {kind}"]

    problems: list[str] = []
    if "enum" in schema and value not in schema["enum"]:
        problems.append(f"{label} must be one of {schema['enum']}")

    if kind in ("integer", "number"):
        if value < schema.get("minimum", value):
            problems.append(f"{label} must be >= {schema['minimum']}")
        if value > schema.get("maximum", value):
            problems.append(f"{label} must be <= {schema['maximum']}")
    elif kind == "string":
        if len(value) < schema.get("minLength", 0):
            problems.append(f"{label} must be at least {schema['minLength']} chars")
        if "maxLength" in schema and len(value) > schema["maxLength"]:
            problems.append(f"{label} must be at most {schema['maxLength']} chars")
    elif kind == "object":
        properties = schema.get("properties", {})
        problems.extend(
            f"missing required {_join(path, key)}"
            for key in schema.get("required", [])
            if key not in value
        )
        for key, item in value.items():
            if key in properties:
                problems.extend(check_schema(item, properties[key], _join(path, key)))
            elif schema.get("additionalProperties") is False:
                problems.append(f"unexpected {_join(path, key)}")
    elif kind == "array" and "items" in schema:
        for index, item in enumerate(value):
            problems.extend(check_schema(item, schema["items"], f"{path}[{index}]"))

    return problems


class BaseTool(ABC):
    """Something the assistant can do on the LLM's behalf.

    Subclasses provide ``name``, ``description``, ``parameters`` and
    ``execute``. ``execute`` returns text or a JSON-serializable dict/list
    and raises on failure; the registry turns exceptions into tool errors.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier the LLM writes after ``TOOL:`` (e.g. 'search_products')."""
        ...

    @property
    @abstractmethod
    def description(self) -> str: ...

    @property
    @abstractmethod
    def parameters(self) -> dict[str, Any]:
        """JSON Schema for the arguments; ``"type": "object"`` at the top."""
        ...

    @abstractmethod
    async def execute(self, **kwargs: Any) -> str | dict | list: ...

    def validate_params(self, params: dict[str, Any]) -> list[str]:
        """Problems with ``params`` under this tool's schema; empty if valid."""
        schema = self.parameters or {}
        if schema.get("type", "object") != "object":
            raise ValueError(f"{self.name}: parameters schema must be an object, got {schema.get('type')!r}")
        return check_schema(params, {**schema, "type": "object"})

    def to_definition(self) -> ToolDefinition:
        return ToolDefinition(name=self.name, description=self.description, parameters=self.parameters)

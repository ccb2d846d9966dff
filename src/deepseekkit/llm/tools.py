"""Tool (function calling) definitions and the JSON value model for their parameters."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, field_validator


# ---------------------------------------------------------------------------
# JSON value tagged union
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JSONNull:
    def to_python(self) -> None:
        return None


@dataclass(frozen=True)
class JSONBool:
    value: bool

    def to_python(self) -> bool:
        return self.value


@dataclass(frozen=True)
class JSONNumber:
    value: int | float

    def to_python(self) -> int | float:
        return self.value


@dataclass(frozen=True)
class JSONString:
    value: str

    def to_python(self) -> str:
        return self.value


@dataclass(frozen=True)
class JSONArray:
    items: tuple[JSONValue, ...] = ()

    def to_python(self) -> list[Any]:
        return [item.to_python() for item in self.items]


@dataclass(frozen=True)
class JSONObject:
    members: dict[str, JSONValue] = field(default_factory=dict)

    def to_python(self) -> dict[str, Any]:
        return {key: value.to_python() for key, value in self.members.items()}


JSONValue = Union[JSONNull, JSONBool, JSONNumber, JSONString, JSONArray, JSONObject]

_JSON_VARIANTS = (JSONNull, JSONBool, JSONNumber, JSONString, JSONArray, JSONObject)


def json_value_from_python(value: Any) -> JSONValue:
    """Convert a plain Python value into a ``JSONValue``.

    Accepts None, bool, int, float, str, list/tuple and dicts with string keys,
    nested arbitrarily. ``bool`` is tested before numbers since it subclasses
    ``int``. Anything else raises ``TypeError``; nothing is stringified.
    """
    if isinstance(value, _JSON_VARIANTS):
        return value
    if value is None:
        return JSONNull()
    if isinstance(value, bool):
        return JSONBool(value)
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise TypeError(f"JSON numbers must be finite, got {value!r}")
        return JSONNumber(value)
    if isinstance(value, str):
        return JSONString(value)
    if isinstance(value, (list, tuple)):
        return JSONArray(tuple(json_value_from_python(item) for item in value))
    if isinstance(value, dict):
        members: dict[str, JSONValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"JSON object keys must be strings, got {key!r}")
            members[key] = json_value_from_python(item)
        return JSONObject(members)
    raise TypeError(f"Cannot represent {type(value).__name__} as JSON")


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


class FunctionDefinition(BaseModel):
    """A function the model may call. ``parameters`` is a JSON Schema object."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: dict[str, Any] = {}

    @field_validator("parameters", mode="before")
    @classmethod
    def _normalize_parameters(cls, value: Any) -> dict[str, Any]:
        if value is None:
            return {}
        try:
            converted = json_value_from_python(value)
        except TypeError as e:
            raise ValueError(str(e)) from e
        if not isinstance(converted, JSONObject):
            raise ValueError("parameters must be a JSON object")
        return converted.to_python()


class Tool(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["function"] = "function"
    function: FunctionDefinition


class FunctionName(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str


class NamedToolChoice(BaseModel):
    """Forces the model to call one specific function."""

    model_config = ConfigDict(frozen=True)

    type: Literal["function"] = "function"
    function: FunctionName

    @classmethod
    def for_function(cls, name: str) -> NamedToolChoice:
        return cls(function=FunctionName(name=name))


ToolChoice = Union[Literal["none", "auto", "required"], NamedToolChoice]


# ---------------------------------------------------------------------------
# Fluent builder
# ---------------------------------------------------------------------------


class FunctionBuilder:
    """Fluent builder for function definitions.

    Each ``add_*`` call returns a new builder, so a partially built function
    can be reused as a template::

        tool = (
            FunctionBuilder("search_products", "Search the catalog")
            .add_string_parameter("query", "Search query", required=True)
            .add_number_parameter("max_price", "Maximum price filter")
            .build_tool()
        )
    """

    def __init__(
        self,
        name: str,
        description: str,
        properties: dict[str, dict[str, Any]] | None = None,
        required: list[str] | None = None,
    ):
        self._name = name
        self._description = description
        self._properties = dict(properties or {})
        self._required = list(required or [])

    def _with(self, name: str, schema: dict[str, Any], required: bool) -> FunctionBuilder:
        properties = dict(self._properties)
        properties[name] = schema
        required_params = list(self._required)
        if required and name not in required_params:
            required_params.append(name)
        return FunctionBuilder(self._name, self._description, properties, required_params)

    def add_string_parameter(
        self,
        name: str,
        description: str,
        required: bool = False,
        enum: list[str] | None = None,
    ) -> FunctionBuilder:
        schema: dict[str, Any] = {"type": "string", "description": description}
        if enum:
            schema["enum"] = list(enum)
        return self._with(name, schema, required)

    def add_number_parameter(self, name: str, description: str, required: bool = False) -> FunctionBuilder:
        return self._with(name, {"type": "number", "description": description}, required)

    def add_boolean_parameter(self, name: str, description: str, required: bool = False) -> FunctionBuilder:
        return self._with(name, {"type": "boolean", "description": description}, required)

    def add_array_parameter(
        self,
        name: str,
        description: str,
        item_type: str,
        required: bool = False,
    ) -> FunctionBuilder:
        schema = {"type": "array", "description": description, "items": {"type": item_type}}
        return self._with(name, schema, required)

    def build(self) -> FunctionDefinition:
        return FunctionDefinition(
            name=self._name,
            description=self._description,
            parameters={
                "type": "object",
                "properties": self._properties,
                "required": self._required,
            },
        )

    def build_tool(self) -> Tool:
        return Tool(function=self.build())

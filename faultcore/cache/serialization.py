"""JSON serialization shared by the cache tiers.

Two pieces live here:

- ``JsonSerializer`` holds the serialization options. It is constructed
  explicitly and passed to every component that needs it; its options can be
  set exactly once.
- ``PayloadRegistry`` is a closed set of payload kinds. The warm tier stores
  untyped JSON, so each record carries a kind name that maps back to a known
  Python type here instead of an arbitrary import path.
"""

from typing import Any, TypeVar

from pydantic import BaseModel, Field, TypeAdapter
from pydantic_core import to_json

from faultcore.core.exceptions import ConfigurationError, UnknownPayloadKindError


T = TypeVar("T")

FLOAT_VECTOR_KIND = "float_vector"


class SerializerOptions(BaseModel):
    """Options applied to every serialization call.

    Attributes:
        exclude_none: Drop None-valued fields when writing
        by_alias: Write field aliases instead of attribute names
        indent: Indentation for written JSON (None = compact)
    """

    exclude_none: bool = Field(default=False, description="Skip None values")
    by_alias: bool = Field(default=False, description="Serialize by alias")
    indent: int | None = Field(default=None, description="JSON indentation")


class JsonSerializer:
    """Serializer with a single, guarded initialization point.

    Passing options to the constructor initializes the serializer. Otherwise
    ``initialize()`` may be called once, before first use; after that the
    options are frozen.

    Example:
        >>> serializer = JsonSerializer()
        >>> serializer.initialize(SerializerOptions(indent=2))
        >>> serializer.deserialize(serializer.serialize({"a": 1}), dict)
        {'a': 1}
    """

    def __init__(self, options: SerializerOptions | None = None) -> None:
        self._options = options
        self._frozen = options is not None
        self._adapters: dict[Any, TypeAdapter[Any]] = {}

    @property
    def options(self) -> SerializerOptions:
        """Active options; reading them freezes the configuration."""
        if self._options is None:
            self._options = SerializerOptions()
        self._frozen = True
        return self._options

    def initialize(self, options: SerializerOptions) -> None:
        """Set the serializer options.

        Raises:
            ConfigurationError: If options were already set or the serializer
                has already been used
        """
        if self._frozen:
            raise ConfigurationError(
                "JsonSerializer is already initialized; options can only be set once"
            )
        self._options = options
        self._frozen = True

    def serialize(self, value: Any) -> str:
        """Serialize a value to JSON text."""
        options = self.options
        return to_json(
            value,
            indent=options.indent,
            exclude_none=options.exclude_none,
            by_alias=options.by_alias,
        ).decode("utf-8")

    def deserialize(self, text: str | bytes, value_type: type[T] | Any = Any) -> T:
        """Parse JSON text into ``value_type``.

        Raises:
            pydantic.ValidationError: If the text is not valid JSON or does not
                match ``value_type``
        """
        self._frozen = True
        return self._adapter(value_type).validate_json(text)

    def _adapter(self, value_type: Any) -> TypeAdapter[Any]:
        try:
            adapter = self._adapters.get(value_type)
        except TypeError:
            # Unhashable type annotation
            return TypeAdapter(value_type)
        if adapter is None:
            adapter = TypeAdapter(value_type)
            self._adapters[value_type] = adapter
        return adapter


class PayloadRegistry:
    """Closed registry mapping payload kind names to Python types."""

    def __init__(self) -> None:
        self._types: dict[str, Any] = {}
        self._kinds: dict[Any, str] = {}

    @classmethod
    def default(cls) -> "PayloadRegistry":
        """Registry with the JSON primitives and float vectors (embeddings)."""
        registry = cls()
        for kind, type_ in (
            ("str", str),
            ("int", int),
            ("float", float),
            ("bool", bool),
            ("list", list),
            ("dict", dict),
            (FLOAT_VECTOR_KIND, list[float]),
        ):
            registry.register(kind, type_)
        return registry

    def register(self, kind: str, type_: Any) -> None:
        """Register a payload kind.

        Raises:
            ValueError: If the kind name or the type is already registered
        """
        if not kind:
            raise ValueError("Payload kind name cannot be empty")
        if kind in self._types:
            raise ValueError(f"Payload kind {kind!r} is already registered")
        if type_ in self._kinds:
            raise ValueError(
                f"Type {type_!r} is already registered as {self._kinds[type_]!r}"
            )
        self._types[kind] = type_
        self._kinds[type_] = kind

    def kinds(self) -> list[str]:
        """Registered kind names."""
        return list(self._types)

    def kind_for(self, value: Any) -> str:
        """Resolve the kind name for a live value.

        Raises:
            UnknownPayloadKindError: If the value's type is not registered
        """
        value_type = type(value)
        if (
            value_type is list
            and FLOAT_VECTOR_KIND in self._types
            and value
            and all(type(item) is float for item in value)
        ):
            return FLOAT_VECTOR_KIND

        kind = self._kinds.get(value_type)
        if kind is None:
            raise UnknownPayloadKindError(
                f"No payload kind registered for type {value_type.__qualname__}",
                details={"type": value_type.__qualname__},
            )
        return kind

    def type_for(self, kind: str) -> Any:
        """Resolve the Python type for a kind name.

        Raises:
            UnknownPayloadKindError: If the kind is not registered
        """
        try:
            return self._types[kind]
        except KeyError:
            raise UnknownPayloadKindError(
                f"Unknown payload kind {kind!r}", details={"kind": kind}
            ) from None

    def decode(self, kind: str, text: str, serializer: JsonSerializer) -> Any:
        """Decode JSON text as the registered type for ``kind``."""
        return serializer.deserialize(text, self.type_for(kind))

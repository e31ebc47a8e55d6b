"""Typed value containers produced by sources and consumed by the resolver."""

from __future__ import annotations

import dataclasses
import enum
import types
import typing
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from layered_config.constants import PATH_SEPARATOR, REDACTED_VALUE
from layered_config.schema import (
    FieldDescriptor,
    SchemaRegistry,
    SemanticType,
    model_field_types,
    normalize_value,
)


class Provenance(str, enum.Enum):
    """Origin of a resolved value, ordered by increasing precedence."""

    DEFAULT = "default"
    FILE = "file"
    ENV = "env"
    CLI = "cli"

    @property
    def rank(self) -> int:
        return _PROVENANCE_RANK[self]


_PROVENANCE_RANK: dict[Provenance, int] = {
    Provenance.DEFAULT: 0,
    Provenance.FILE: 1,
    Provenance.ENV: 2,
    Provenance.CLI: 3,
}


@dataclass(frozen=True, slots=True)
class TypedValue:
    """Tagged value: the semantic kind travels with the normalized payload."""

    kind: SemanticType
    value: object

    @classmethod
    def of(
        cls, descriptor: FieldDescriptor, raw: object, *, path: str | None = None
    ) -> TypedValue:
        """Type-check ``raw`` against ``descriptor`` and wrap it."""

        return cls(descriptor.semantic_type, normalize_value(descriptor, raw, path=path))


@dataclass(frozen=True, slots=True)
class SourcedValue:
    value: TypedValue
    provenance: Provenance
    origin: str


@dataclass(frozen=True, slots=True)
class PartialConfig:
    """Sparse leaf-path -> value mapping contributed by one source."""

    provenance: Provenance
    entries: Mapping[str, SourcedValue] = dataclasses.field(default_factory=dict)
    unknown: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "entries", types.MappingProxyType(dict(self.entries)))
        object.__setattr__(self, "unknown", tuple(self.unknown))

    @classmethod
    def empty(cls, provenance: Provenance) -> PartialConfig:
        return cls(provenance=provenance)

    def get(self, path: str) -> SourcedValue | None:
        return self.entries.get(path)

    def values(self) -> dict[str, object]:
        """Plain leaf-path -> value view, mostly useful in diagnostics and tests."""

        return {path: item.value.value for path, item in self.entries.items()}

    def __contains__(self, path: object) -> bool:
        return path in self.entries

    def __len__(self) -> int:
        return len(self.entries)


class EffectiveConfig(Mapping[str, object]):
    """Fully-resolved, immutable configuration keyed by dotted leaf path."""

    __slots__ = ("_origins", "_provenance", "_schema", "_values")

    def __init__(
        self,
        schema: SchemaRegistry,
        values: Mapping[str, object],
        provenance: Mapping[str, Provenance],
        origins: Mapping[str, str] | None = None,
    ) -> None:
        ordered = {path: values[path] for path in schema.leaf_paths()}
        self._schema = schema
        self._values = types.MappingProxyType(ordered)
        self._provenance = types.MappingProxyType(
            {path: provenance.get(path, Provenance.DEFAULT) for path in ordered}
        )
        self._origins = types.MappingProxyType(
            {path: (origins or {}).get(path, "") for path in ordered}
        )

    @property
    def schema(self) -> SchemaRegistry:
        return self._schema

    def __getitem__(self, path: str) -> object:
        return self._values[path]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, EffectiveConfig):
            return dict(self._values) == dict(other._values)
        return super().__eq__(other)

    __hash__ = None  # type: ignore[assignment]

    def provenance(self, path: str) -> Provenance:
        return self._provenance[path]

    def origin(self, path: str) -> str:
        return self._origins[path]

    def provenance_map(self) -> dict[str, str]:
        return {path: item.value for path, item in self._provenance.items()}

    def section(self, path: str) -> dict[str, Any]:
        """Nested plain dict for the object section at ``path``."""

        descriptor = self._schema.field(path)
        if descriptor.is_leaf:
            raise KeyError(f"{path} is a leaf field, not a section")
        return _nest(
            {
                leaf[len(path) + 1 :]: _plain(value)
                for leaf, value in self._values.items()
                if leaf.startswith(path + PATH_SEPARATOR)
            }
        )

    def as_dict(self) -> dict[str, Any]:
        """Nested plain dict of every value (tuples rendered as lists)."""

        return _nest({path: _plain(value) for path, value in self._values.items()})

    def redacted(self) -> dict[str, Any]:
        """Nested plain dict with sensitive leaves masked."""

        masked: dict[str, object] = {}
        for path, value in self._values.items():
            if self._schema.is_sensitive(path) and value is not None:
                masked[path] = REDACTED_VALUE
            else:
                masked[path] = _plain(value)
        return _nest(masked)

    def to_model(self, model_type: type | None = None) -> Any:
        """Instantiate the dataclass the schema was described from."""

        target = model_type or self._schema.model_type
        if target is None:
            raise TypeError("schema was not described from a dataclass; pass model_type")
        return _build_model(target, self.as_dict())

    def __repr__(self) -> str:
        return f"EffectiveConfig({self.redacted()!r})"


def _plain(value: object) -> object:
    if isinstance(value, tuple):
        return list(value)
    return value


def _nest(flat: Mapping[str, object]) -> dict[str, Any]:
    nested: dict[str, Any] = {}
    for path, value in flat.items():
        cursor = nested
        parts = path.split(PATH_SEPARATOR)
        for part in parts[:-1]:
            cursor = cursor.setdefault(part, {})
        cursor[parts[-1]] = value
    return nested


def _build_model(model_type: type, payload: Mapping[str, Any]) -> Any:
    field_types = model_field_types(model_type)
    kwargs: dict[str, Any] = {}
    for item in dataclasses.fields(model_type):
        if not item.init or item.name not in payload:
            continue
        kwargs[item.name] = _convert(field_types[item.name], payload[item.name])
    return model_type(**kwargs)


def _convert(annotation: Any, value: Any) -> Any:
    if value is None:
        return None
    if isinstance(annotation, type) and dataclasses.is_dataclass(annotation):
        return _build_model(annotation, value)
    if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        return annotation(value)
    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)
    if origin in {list, tuple} and args:
        items = [_convert(args[0], item) for item in value]
        return tuple(items) if origin is tuple else items
    return value


__all__ = [
    "EffectiveConfig",
    "PartialConfig",
    "Provenance",
    "SourcedValue",
    "TypedValue",
]

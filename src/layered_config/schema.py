"""
layered-config — schema registry.

File: src/layered_config/schema.py

Purpose
- Describe every configuration field once: semantic type, default, documentation,
  environment binding, CLI eligibility, sensitivity and structural constraints.

What should be included in this file
- ``FieldDescriptor`` records and the ordered, immutable ``SchemaRegistry``.
- ``describe()`` which builds a registry from dataclass metadata declared via ``setting()``.
- Type normalization and constraint checks shared by sources, resolver and validator.

Functional requirements
- Fail at construction on name or env-key collisions and on invalid defaults.
- Address nested fields by dotted paths (``"log.sink"``).

Non-functional requirements
- Registries are read-only after construction and safe to share between threads.
"""

from __future__ import annotations

import dataclasses
import enum
import re
import types
import typing
from collections.abc import Iterable, Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, Union

from layered_config.constants import PATH_SEPARATOR
from layered_config.errors import FieldIssue, FieldTypeError, SchemaDefinitionError

_METADATA_KEY: Final[str] = "layered_config"
_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_ENV_NAME_PATTERN = re.compile(r"^[A-Z_][A-Z0-9_]*$")


class SemanticType(str, enum.Enum):
    """Kinds of values a configuration field may hold."""

    STRING = "string"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    ENUM = "enum"
    LIST = "list"
    OBJECT = "object"


PRIMITIVE_TYPES: Final[frozenset[SemanticType]] = frozenset(
    {
        SemanticType.STRING,
        SemanticType.INTEGER,
        SemanticType.FLOAT,
        SemanticType.BOOLEAN,
        SemanticType.ENUM,
    }
)


class _Required(enum.Enum):
    REQUIRED = "REQUIRED"

    def __repr__(self) -> str:
        return "REQUIRED"


REQUIRED: Final = _Required.REQUIRED
"""Sentinel default for fields that have no compiled-in default."""


@dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """Static description of one configuration field."""

    name: str
    semantic_type: SemanticType
    default: object = REQUIRED
    doc: str = ""
    env_key: str | None = None
    cli_overridable: bool = False
    sensitive: bool = False
    choices: tuple[object, ...] = ()
    item_type: SemanticType | None = None
    minimum: float | None = None
    maximum: float | None = None
    pattern: str | None = None
    nullable: bool = False
    fields: SchemaRegistry | None = None

    def __post_init__(self) -> None:
        if not _NAME_PATTERN.match(self.name):
            raise SchemaDefinitionError(f"invalid field name {self.name!r}")
        if self.env_key is not None and not _ENV_NAME_PATTERN.match(self.env_key):
            raise SchemaDefinitionError(
                f"{self.name}: env_key {self.env_key!r} must match {_ENV_NAME_PATTERN.pattern}"
            )
        if not isinstance(self.choices, tuple):
            object.__setattr__(self, "choices", tuple(self.choices))

        kind = self.semantic_type
        if kind is SemanticType.OBJECT:
            if self.fields is None:
                raise SchemaDefinitionError(f"{self.name}: object fields need a nested registry")
            if self.env_key is not None:
                raise SchemaDefinitionError(f"{self.name}: env_key is only valid on leaf fields")
            if self.default is not REQUIRED:
                raise SchemaDefinitionError(
                    f"{self.name}: object defaults come from their nested fields"
                )
            return
        if self.fields is not None:
            raise SchemaDefinitionError(f"{self.name}: only object fields may nest a registry")
        if kind is SemanticType.ENUM and not self.choices:
            raise SchemaDefinitionError(f"{self.name}: enum fields need choices")
        if kind is SemanticType.LIST:
            if self.item_type not in PRIMITIVE_TYPES:
                raise SchemaDefinitionError(
                    f"{self.name}: list fields need a primitive item_type"
                )
            if self.item_type is SemanticType.ENUM and not self.choices:
                raise SchemaDefinitionError(f"{self.name}: enum list items need choices")
        elif self.item_type is not None:
            raise SchemaDefinitionError(f"{self.name}: item_type is only valid on list fields")
        if self.pattern is not None:
            try:
                re.compile(self.pattern)
            except re.error as exc:
                raise SchemaDefinitionError(f"{self.name}: invalid pattern: {exc}") from exc

        if self.default is REQUIRED:
            return
        normalized, problem = _normalize(self, self.default)
        if problem is not None:
            raise SchemaDefinitionError(f"{self.name}: invalid default: {problem}")
        violations = constraint_violations(self, normalized)
        if violations:
            raise SchemaDefinitionError(f"{self.name}: invalid default: {violations[0]}")
        object.__setattr__(self, "default", normalized)

    @property
    def is_leaf(self) -> bool:
        return self.semantic_type is not SemanticType.OBJECT

    @property
    def has_default(self) -> bool:
        return self.is_leaf and self.default is not REQUIRED


class SchemaRegistry:
    """Ordered, name-keyed and immutable collection of field descriptors."""

    __slots__ = ("_env_prefix", "_fields", "_leaves", "_model_type", "_nodes")

    def __init__(
        self,
        descriptors: Iterable[FieldDescriptor],
        *,
        env_prefix: str | None = None,
        model_type: type | None = None,
    ) -> None:
        items = tuple(descriptors)
        if env_prefix is not None:
            if not _ENV_NAME_PATTERN.match(env_prefix):
                raise SchemaDefinitionError(f"invalid env_prefix {env_prefix!r}")
            items = _derive_env_keys(items, env_prefix, ())

        fields: dict[str, FieldDescriptor] = {}
        for descriptor in items:
            if not isinstance(descriptor, FieldDescriptor):
                raise SchemaDefinitionError(f"expected FieldDescriptor, got {descriptor!r}")
            if descriptor.name in fields:
                raise SchemaDefinitionError(f"duplicate field name {descriptor.name!r}")
            fields[descriptor.name] = descriptor

        nodes: dict[str, FieldDescriptor] = {}
        leaves: dict[str, FieldDescriptor] = {}
        env_owners: dict[str, str] = {}
        for path, descriptor in _walk(fields.values(), ()):
            nodes[path] = descriptor
            if not descriptor.is_leaf:
                continue
            leaves[path] = descriptor
            if descriptor.env_key is None:
                continue
            owner = env_owners.get(descriptor.env_key)
            if owner is not None:
                raise SchemaDefinitionError(
                    f"env_key {descriptor.env_key!r} is bound to both {owner!r} and {path!r}"
                )
            env_owners[descriptor.env_key] = path

        self._fields = types.MappingProxyType(fields)
        self._nodes = types.MappingProxyType(nodes)
        self._leaves = types.MappingProxyType(leaves)
        self._env_prefix = env_prefix
        self._model_type = model_type

    @property
    def env_prefix(self) -> str | None:
        return self._env_prefix

    @property
    def model_type(self) -> type | None:
        """Dataclass this registry was described from, if any."""

        return self._model_type

    def field(self, path: str) -> FieldDescriptor:
        """Return the descriptor at dotted ``path`` (sections included)."""

        try:
            return self._nodes[path]
        except KeyError:
            raise KeyError(f"unknown configuration field: {path}") from None

    def has_field(self, path: str) -> bool:
        return path in self._nodes

    def is_leaf(self, path: str) -> bool:
        return path in self._leaves

    def iter_fields(self) -> tuple[FieldDescriptor, ...]:
        """Top-level descriptors in declaration order."""

        return tuple(self._fields.values())

    def iter_leaves(self) -> tuple[tuple[str, FieldDescriptor], ...]:
        """Every leaf as ``(dotted_path, descriptor)``, depth-first in declaration order."""

        return tuple(self._leaves.items())

    def leaf_paths(self) -> tuple[str, ...]:
        return tuple(self._leaves)

    def is_cli_overridable(self, path: str) -> bool:
        """A leaf is CLI-overridable when it or any enclosing section is marked so."""

        if path not in self._leaves:
            return False
        parts = path.split(PATH_SEPARATOR)
        for depth in range(1, len(parts) + 1):
            if self._nodes[PATH_SEPARATOR.join(parts[:depth])].cli_overridable:
                return True
        return False

    def is_sensitive(self, path: str) -> bool:
        """A field is sensitive when it or any enclosing section is marked so."""

        parts = path.split(PATH_SEPARATOR)
        return any(
            self.field(PATH_SEPARATOR.join(parts[:depth])).sensitive
            for depth in range(1, len(parts) + 1)
        )

    def docs(self) -> dict[str, str]:
        """Documentation strings keyed by dotted path, sections included."""

        return {path: item.doc for path, item in self._nodes.items() if item.doc}

    def default_document(self, *, include_required: bool = False) -> dict[str, Any]:
        """Nested mapping of defaults in declaration order.

        Leaves without a default are left out unless ``include_required`` is set,
        in which case they carry the ``REQUIRED`` sentinel (rendered by codecs as
        commented placeholders).
        """

        return _default_document(self._fields.values(), include_required=include_required)

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __repr__(self) -> str:
        names = ", ".join(self._fields)
        return f"SchemaRegistry([{names}])"


# ---------------------------------------------------------------------------
# Value normalization and constraints
# ---------------------------------------------------------------------------


def normalize_value(descriptor: FieldDescriptor, raw: object, *, path: str | None = None) -> object:
    """Return ``raw`` normalized for ``descriptor`` or raise ``FieldTypeError``."""

    normalized, problem = _normalize(descriptor, raw)
    if problem is not None:
        raise FieldTypeError((FieldIssue(path or descriptor.name, problem),))
    return normalized


def type_problem(descriptor: FieldDescriptor, raw: object) -> str | None:
    """Return a description of why ``raw`` does not fit ``descriptor`` or ``None``."""

    return _normalize(descriptor, raw)[1]


def constraint_violations(descriptor: FieldDescriptor, value: object) -> list[str]:
    """Return structural constraint violations for an already-normalized value."""

    if value is None:
        return []
    kind = descriptor.semantic_type
    problems: list[str] = []
    if kind is SemanticType.ENUM and value not in descriptor.choices:
        problems.append(f"must be one of {_render_choices(descriptor.choices)}")
    if kind is SemanticType.LIST and descriptor.choices and isinstance(value, tuple):
        for index, item in enumerate(value):
            if item not in descriptor.choices:
                problems.append(
                    f"item {index} must be one of {_render_choices(descriptor.choices)}"
                )
    if kind in {SemanticType.INTEGER, SemanticType.FLOAT} and isinstance(value, (int, float)):
        if descriptor.minimum is not None and value < descriptor.minimum:
            problems.append(f"must be >= {descriptor.minimum}")
        if descriptor.maximum is not None and value > descriptor.maximum:
            problems.append(f"must be <= {descriptor.maximum}")
    if (
        kind is SemanticType.STRING
        and descriptor.pattern is not None
        and isinstance(value, str)
        and re.fullmatch(descriptor.pattern, value) is None
    ):
        problems.append(f"must match pattern {descriptor.pattern!r}")
    return problems


def _normalize(descriptor: FieldDescriptor, raw: object) -> tuple[object, str | None]:
    kind = descriptor.semantic_type
    if kind is SemanticType.OBJECT:
        return None, "object sections cannot hold a single value"
    if raw is None:
        if descriptor.nullable:
            return None, None
        return None, "must not be null"
    if kind is SemanticType.LIST:
        if not isinstance(raw, (list, tuple)):
            return None, f"expected list, got {type(raw).__name__}"
        assert descriptor.item_type is not None
        items: list[object] = []
        for index, item in enumerate(raw):
            normalized, problem = _normalize_scalar(descriptor.item_type, item)
            if problem is not None:
                return None, f"item {index}: {problem}"
            items.append(normalized)
        return tuple(items), None
    return _normalize_scalar(kind, raw)


def _normalize_scalar(kind: SemanticType, raw: object) -> tuple[object, str | None]:
    if kind is SemanticType.STRING:
        if isinstance(raw, str):
            return raw, None
    elif kind is SemanticType.BOOLEAN:
        if isinstance(raw, bool):
            return raw, None
    elif kind is SemanticType.INTEGER:
        if isinstance(raw, int) and not isinstance(raw, bool):
            return raw, None
    elif kind is SemanticType.FLOAT:
        if isinstance(raw, (int, float)) and not isinstance(raw, bool):
            return float(raw), None
    elif kind is SemanticType.ENUM:
        value = raw.value if isinstance(raw, enum.Enum) else raw
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            return value, None
    return None, f"expected {kind.value}, got {type(raw).__name__}"


def _render_choices(choices: Sequence[object]) -> str:
    return "[" + ", ".join(repr(item) for item in choices) + "]"


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------


def _walk(
    descriptors: Iterable[FieldDescriptor], prefix: tuple[str, ...]
) -> Iterator[tuple[str, FieldDescriptor]]:
    for descriptor in descriptors:
        path = (*prefix, descriptor.name)
        yield PATH_SEPARATOR.join(path), descriptor
        if descriptor.fields is not None:
            yield from _walk(descriptor.fields.iter_fields(), path)


def _derive_env_keys(
    descriptors: Sequence[FieldDescriptor],
    env_prefix: str,
    prefix: tuple[str, ...],
) -> tuple[FieldDescriptor, ...]:
    derived: list[FieldDescriptor] = []
    for descriptor in descriptors:
        path = (*prefix, descriptor.name)
        if descriptor.fields is not None:
            nested = SchemaRegistry(
                _derive_env_keys(descriptor.fields.iter_fields(), env_prefix, path),
                model_type=descriptor.fields.model_type,
            )
            derived.append(dataclasses.replace(descriptor, fields=nested))
        elif descriptor.env_key is None:
            env_key = env_prefix + "_".join(part.upper() for part in path)
            derived.append(dataclasses.replace(descriptor, env_key=env_key))
        else:
            derived.append(descriptor)
    return tuple(derived)


def _default_document(
    descriptors: Iterable[FieldDescriptor], *, include_required: bool
) -> dict[str, Any]:
    document: dict[str, Any] = {}
    for descriptor in descriptors:
        if descriptor.fields is not None:
            section = _default_document(
                descriptor.fields.iter_fields(), include_required=include_required
            )
            if section:
                document[descriptor.name] = section
        elif descriptor.has_default:
            document[descriptor.name] = _to_document_value(descriptor.default)
        elif include_required:
            document[descriptor.name] = REQUIRED
    return document


def _to_document_value(value: object) -> object:
    if isinstance(value, tuple):
        return list(value)
    return value


# ---------------------------------------------------------------------------
# Dataclass description
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _SettingSpec:
    doc: str = ""
    env_key: str | None = None
    cli_overridable: bool = False
    sensitive: bool = False
    minimum: float | None = None
    maximum: float | None = None
    pattern: str | None = None
    choices: tuple[object, ...] | None = None


def setting(
    default: Any = dataclasses.MISSING,
    *,
    default_factory: Any = dataclasses.MISSING,
    doc: str = "",
    env: str | None = None,
    cli: bool = False,
    sensitive: bool = False,
    minimum: float | None = None,
    maximum: float | None = None,
    pattern: str | None = None,
    choices: Sequence[object] | None = None,
) -> Any:
    """Declare a dataclass field together with its configuration metadata."""

    spec = _SettingSpec(
        doc=doc,
        env_key=env,
        cli_overridable=cli,
        sensitive=sensitive,
        minimum=minimum,
        maximum=maximum,
        pattern=pattern,
        choices=None if choices is None else tuple(choices),
    )
    return dataclasses.field(
        default=default,
        default_factory=default_factory,
        metadata={_METADATA_KEY: spec},
    )


def describe(model_type: type, *, env_prefix: str | None = None) -> SchemaRegistry:
    """Build a registry from a dataclass type and its ``setting()`` metadata."""

    descriptors = _describe_fields(model_type, defaults_from=None)
    return SchemaRegistry(descriptors, env_prefix=env_prefix, model_type=model_type)


def _describe_fields(model_type: type, *, defaults_from: object | None) -> list[FieldDescriptor]:
    if not dataclasses.is_dataclass(model_type):
        raise SchemaDefinitionError(f"{model_type!r} is not a dataclass type")
    try:
        hints = typing.get_type_hints(model_type)
    except (NameError, TypeError) as exc:
        raise SchemaDefinitionError(
            f"cannot resolve annotations of {model_type.__name__}: {exc}"
        ) from exc

    descriptors: list[FieldDescriptor] = []
    for item in dataclasses.fields(model_type):
        if not item.init:
            continue
        spec = item.metadata.get(_METADATA_KEY, _SettingSpec())
        annotation, nullable = _unwrap_optional(hints[item.name])
        default = _field_default(item, defaults_from)
        where = f"{model_type.__name__}.{item.name}"

        if isinstance(annotation, type) and dataclasses.is_dataclass(annotation):
            nested_defaults = None if default is REQUIRED else default
            nested = SchemaRegistry(
                _describe_fields(annotation, defaults_from=nested_defaults),
                model_type=annotation,
            )
            descriptors.append(
                FieldDescriptor(
                    name=item.name,
                    semantic_type=SemanticType.OBJECT,
                    doc=spec.doc or _class_doc(annotation),
                    cli_overridable=spec.cli_overridable,
                    sensitive=spec.sensitive,
                    fields=nested,
                )
            )
            continue

        kind, item_type, choices = _classify(annotation, where)
        descriptors.append(
            FieldDescriptor(
                name=item.name,
                semantic_type=kind,
                default=default,
                doc=spec.doc,
                env_key=spec.env_key,
                cli_overridable=spec.cli_overridable,
                sensitive=spec.sensitive,
                choices=spec.choices if spec.choices is not None else choices,
                item_type=item_type,
                minimum=spec.minimum,
                maximum=spec.maximum,
                pattern=spec.pattern,
                nullable=nullable,
            )
        )
    return descriptors


def _field_default(item: dataclasses.Field[Any], defaults_from: object | None) -> object:
    if defaults_from is not None:
        return getattr(defaults_from, item.name)
    if item.default is not dataclasses.MISSING:
        return item.default
    if item.default_factory is not dataclasses.MISSING:
        return item.default_factory()
    return REQUIRED


def _unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        members = [arg for arg in typing.get_args(annotation) if arg is not type(None)]
        if len(members) == 1:
            return members[0], True
    return annotation, False


def _classify(
    annotation: Any, where: str
) -> tuple[SemanticType, SemanticType | None, tuple[object, ...]]:
    scalar = _classify_scalar(annotation)
    if scalar is not None:
        return scalar[0], None, scalar[1]

    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)
    if origin in {list, tuple, Sequence} and args:
        if origin is tuple and not (len(args) == 2 and args[1] is Ellipsis):
            raise SchemaDefinitionError(f"{where}: only homogeneous tuple[T, ...] is supported")
        item = _classify_scalar(args[0])
        if item is None:
            raise SchemaDefinitionError(f"{where}: unsupported list item type {args[0]!r}")
        return SemanticType.LIST, item[0], item[1]

    raise SchemaDefinitionError(f"{where}: unsupported annotation {annotation!r}")


def _classify_scalar(annotation: Any) -> tuple[SemanticType, tuple[object, ...]] | None:
    if annotation is str:
        return SemanticType.STRING, ()
    if annotation is bool:
        return SemanticType.BOOLEAN, ()
    if annotation is int:
        return SemanticType.INTEGER, ()
    if annotation is float:
        return SemanticType.FLOAT, ()
    if isinstance(annotation, type) and issubclass(annotation, enum.Enum):
        return SemanticType.ENUM, tuple(member.value for member in annotation)
    if typing.get_origin(annotation) is Literal:
        return SemanticType.ENUM, tuple(typing.get_args(annotation))
    return None


def _class_doc(model_type: type) -> str:
    doc = model_type.__doc__ or ""
    # dataclass() synthesizes "Name(field: type, ...)" when no docstring exists.
    if doc.startswith(f"{model_type.__name__}("):
        return ""
    return " ".join(doc.split())


def model_field_types(model_type: type) -> Mapping[str, Any]:
    """Resolved annotations of a described dataclass, Optional unwrapped."""

    hints = typing.get_type_hints(model_type)
    return {name: _unwrap_optional(annotation)[0] for name, annotation in hints.items()}


__all__ = [
    "PRIMITIVE_TYPES",
    "REQUIRED",
    "FieldDescriptor",
    "SchemaRegistry",
    "SemanticType",
    "constraint_violations",
    "describe",
    "model_field_types",
    "normalize_value",
    "setting",
    "type_problem",
]

"""
layered-config — effective configuration validation.

File: src/layered_config/validation.py

Purpose
- Check a resolved configuration against per-field structural constraints and an
  optional caller-supplied cross-field rule, reporting every issue at once.

Functional requirements
- Issues are ordered: structural checks in schema order, then cross-field issues
  in the order the callback yields them.
- Exceptions raised by the callback propagate unchanged.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from layered_config.errors import ConfigValidationError, FieldIssue
from layered_config.schema import SchemaRegistry, constraint_violations, type_problem
from layered_config.values import EffectiveConfig

ValidationIssue = FieldIssue
CrossFieldValidator = Callable[[EffectiveConfig], Iterable[FieldIssue | tuple[str, str]]]


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    """Validation result carrying the config when no issues were found."""

    config: EffectiveConfig | None
    issues: tuple[ValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ValidationIssue(path=path, message=message))

    def items(self) -> tuple[ValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)


def validate_config(
    schema: SchemaRegistry,
    effective: EffectiveConfig,
    cross_field: CrossFieldValidator | None = None,
) -> ConfigValidationResult:
    """Validate ``effective`` and return structured issues with dotted paths."""

    issues = _IssueCollector()
    for path, descriptor in schema.iter_leaves():
        if path not in effective:
            issues.add(path, "field is missing from the resolved configuration")
            continue
        value = effective[path]
        problem = type_problem(descriptor, value)
        if problem is not None:
            issues.add(path, problem)
            continue
        for message in constraint_violations(descriptor, value):
            issues.add(path, message)

    if cross_field is not None:
        for item in cross_field(effective) or ():
            if isinstance(item, FieldIssue):
                issues.add(item.path, item.message)
            else:
                path, message = item
                issues.add(str(path), str(message))

    if issues.has_issues:
        return ConfigValidationResult(config=None, issues=issues.items())
    return ConfigValidationResult(config=effective, issues=())


def validate(
    schema: SchemaRegistry,
    effective: EffectiveConfig,
    cross_field: CrossFieldValidator | None = None,
) -> EffectiveConfig:
    """Validate ``effective`` and raise ``ConfigValidationError`` on failure."""

    result = validate_config(schema, effective, cross_field)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


__all__ = [
    "ConfigValidationResult",
    "CrossFieldValidator",
    "ValidationIssue",
    "validate",
    "validate_config",
]

"""
layered-config — unit tests for effective configuration validation

File: tests/unit/validation/test_validation.py

Purpose
- Validate structural checks and the cross-field callback contract.

What this test file should cover
- Enum membership, numeric bounds and patterns reported per leaf in schema order.
- Cross-field issues given as ``ValidationIssue`` objects or ``(path, reason)`` tuples.
- Raising and non-raising entry points.

Functional requirements
- Every issue is reported at once.

Non-functional requirements
- Side-effect free.
"""

from __future__ import annotations

import pytest

from layered_config.errors import ConfigValidationError
from layered_config.resolver import resolve
from layered_config.schema import FieldDescriptor, SchemaRegistry, SemanticType
from layered_config.validation import ValidationIssue, validate, validate_config
from layered_config.values import (
    EffectiveConfig,
    PartialConfig,
    Provenance,
    SourcedValue,
    TypedValue,
)


def _schema() -> SchemaRegistry:
    return SchemaRegistry(
        [
            FieldDescriptor(
                "mode", SemanticType.ENUM, default="fast", choices=("fast", "safe")
            ),
            FieldDescriptor("workers", SemanticType.INTEGER, default=4, minimum=1, maximum=64),
            FieldDescriptor(
                "name", SemanticType.STRING, default="app", pattern=r"[a-z][a-z0-9-]*"
            ),
            FieldDescriptor("min_port", SemanticType.INTEGER, default=1000),
            FieldDescriptor("max_port", SemanticType.INTEGER, default=2000),
        ]
    )


def _effective(**values: object) -> EffectiveConfig:
    schema = _schema()
    entries = {
        path: SourcedValue(TypedValue.of(schema.field(path), value), Provenance.FILE, "test")
        for path, value in values.items()
    }
    return resolve(schema, [PartialConfig(Provenance.FILE, entries)])


def test_valid_config_passes_through_unchanged() -> None:
    effective = _effective()

    result = validate_config(_schema(), effective)

    assert result.is_valid
    assert result.issues == ()
    assert validate(_schema(), effective) is effective


def test_structural_violations_are_collected_in_schema_order() -> None:
    effective = _effective(mode="turbo", workers=0, name="App!")

    result = validate_config(_schema(), effective)

    assert not result.is_valid
    assert result.config is None
    assert [issue.path for issue in result.issues] == ["mode", "workers", "name"]
    assert result.issues[0].message == "must be one of ['fast', 'safe']"
    assert result.issues[1].message == "must be >= 1"


def test_cross_field_issues_follow_structural_ones() -> None:
    def ports_ordered(config: EffectiveConfig) -> list[object]:
        issues: list[object] = []
        if config["min_port"] > config["max_port"]:  # type: ignore[operator]
            issues.append(("min_port", "must not exceed max_port"))
            issues.append(ValidationIssue("max_port", "must be at least min_port"))
        return issues

    effective = _effective(workers=100, min_port=3000)

    with pytest.raises(ConfigValidationError) as excinfo:
        validate(_schema(), effective, ports_ordered)  # type: ignore[arg-type]

    assert [issue.path for issue in excinfo.value.issues] == ["workers", "min_port", "max_port"]
    assert str(excinfo.value) == (
        "invalid config:\n"
        "- workers: must be <= 64\n"
        "- min_port: must not exceed max_port\n"
        "- max_port: must be at least min_port"
    )


def test_cross_field_callback_exceptions_propagate() -> None:
    def broken(config: EffectiveConfig) -> list[ValidationIssue]:
        raise RuntimeError("rule crashed")

    with pytest.raises(RuntimeError, match="rule crashed"):
        validate_config(_schema(), _effective(), broken)

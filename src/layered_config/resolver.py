"""Merge partial configurations into one effective configuration."""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable

from layered_config.errors import FieldIssue, FieldTypeError, MissingRequiredFieldError
from layered_config.schema import SchemaRegistry, type_problem
from layered_config.values import EffectiveConfig, PartialConfig, Provenance

logger = logging.getLogger(__name__)


def resolve(schema: SchemaRegistry, partials: Iterable[PartialConfig]) -> EffectiveConfig:
    """Apply ``partials`` in increasing precedence and fill the rest from defaults.

    Precedence is per leaf: ``defaults < file < env < cli``. Partials of equal
    provenance keep the order they were given in, so the later one wins.
    """

    ordered = sorted(partials, key=lambda partial: partial.provenance.rank)

    values: dict[str, object] = {}
    provenance: dict[str, Provenance] = {}
    origins: dict[str, str] = {}
    issues: list[FieldIssue] = []
    for partial in ordered:
        for path, sourced in partial.entries.items():
            if not schema.is_leaf(path):
                issues.append(FieldIssue(path, "unknown configuration field"))
                continue
            descriptor = schema.field(path)
            if sourced.value.kind is not descriptor.semantic_type:
                issues.append(
                    FieldIssue(
                        path,
                        f"expected {descriptor.semantic_type.value}, "
                        f"got {sourced.value.kind.value}",
                    )
                )
                continue
            problem = type_problem(descriptor, sourced.value.value)
            if problem is not None:
                issues.append(FieldIssue(path, problem))
                continue
            values[path] = sourced.value.value
            provenance[path] = sourced.provenance
            origins[path] = sourced.origin
    if issues:
        raise FieldTypeError(issues)

    missing: list[str] = []
    for path, descriptor in schema.iter_leaves():
        if path in values:
            continue
        if descriptor.has_default:
            values[path] = descriptor.default
            provenance[path] = Provenance.DEFAULT
            origins[path] = "default"
        else:
            missing.append(path)
    if missing:
        raise MissingRequiredFieldError(missing)

    effective = EffectiveConfig(schema, values, provenance, origins)
    counts = Counter(item.value for item in provenance.values())
    logger.debug("config_resolved", extra={"fields": len(effective), "provenance": dict(counts)})
    return effective


__all__ = ["resolve"]

"""Validation of formatted field values against the allowed values of their fields."""

from typing import Any

from ticketnorm.constants import ALLOWED_VALUES_MAX_DISPLAY, MAX_SUGGESTIONS
from ticketnorm.models import (
    AllowedValue,
    BatchValidationResult,
    FieldPair,
    ResolvedField,
    ValueValidationResult,
)
from ticketnorm.utils.similarity import find_similar, rank_by_similarity


def _comparable_value(value: Any) -> str:
    """Unwrap a formatted value, e.g. `{"value": "High"}`, to the string compared with the allowed values."""
    if isinstance(value, dict):
        for key in ('value', 'name', 'id'):
            if value.get(key):
                return str(value[key])
        return ''
    return str(value)


def _suggest_values(value: str, allowed_values: list[AllowedValue], max_suggestions: int) -> list[str]:
    candidates = [allowed.display for allowed in allowed_values if allowed.display]
    # the allowed values are a closed set: fall back to the closest ones when none is a near match
    return find_similar(value, candidates, max_suggestions) or rank_by_similarity(
        value, candidates, max_suggestions
    )


def validate_field_value(
    field: ResolvedField, value: Any, max_suggestions: int = MAX_SUGGESTIONS
) -> ValueValidationResult:
    """Check that a formatted value is one of the allowed values of the field.

    Fields without allowed values accept any value. Names and value tokens are compared case-insensitively, ids
    exactly. Every member of a list must be an allowed value.

    Args:
        field: the resolved field.
        value: the formatted value, e.g. `{"value": "High"}` or a list of such objects.
        max_suggestions: the maximum number of allowed values suggested when the value is not allowed.

    Returns:
        An instance of `ValueValidationResult`. When the value is not allowed the result lists all the allowed
        values and up to `max_suggestions` of the ones closest to the value. Unlike field name suggestions, these
        are not bounded by edit distance: when no allowed value is close, the closest ones are suggested anyway.
    """
    allowed_values = field.metadata.allowed_values
    if not allowed_values:
        return ValueValidationResult(valid=True, normalized_value=value)

    members = value if isinstance(value, list) else [value]
    for member in members:
        candidate = _comparable_value(member)
        if any(allowed.matches(candidate) for allowed in allowed_values):
            continue
        return ValueValidationResult(
            valid=False,
            error=f'Invalid value "{candidate}" for field "{field.display_name}"',
            allowed_values=allowed_values,
            suggestions=_suggest_values(candidate, allowed_values, max_suggestions) or None,
        )

    return ValueValidationResult(valid=True, normalized_value=value)


def validate_field_values(
    resolved_fields: dict[str, ResolvedField],
    field_pairs: list[FieldPair],
    max_suggestions: int = MAX_SUGGESTIONS,
) -> BatchValidationResult:
    """Validate every value independently. Values of unresolved names are not validated."""
    batch = BatchValidationResult()

    for pair in field_pairs:
        field = resolved_fields.get(pair.name)
        if field is None:
            batch.results[pair.name] = ValueValidationResult(valid=True, normalized_value=pair.value)
            continue

        result = validate_field_value(field, pair.value, max_suggestions)
        batch.results[pair.name] = result
        if not result.valid:
            batch.valid = False

    return batch


def format_allowed_values(
    allowed_values: list[AllowedValue], max_display: int = ALLOWED_VALUES_MAX_DISPLAY
) -> str:
    """Render allowed values as a comma-separated list, e.g. `High, Low, ... (+3 more)`."""
    values = [allowed.display for allowed in allowed_values]
    if len(values) <= max_display:
        return ', '.join(values)
    return f'{", ".join(values[:max_display])}, ... (+{len(values) - max_display} more)'


def format_validation_errors(
    results: dict[str, ValueValidationResult], max_display: int = ALLOWED_VALUES_MAX_DISPLAY
) -> str:
    lines: list[str] = []

    for result in results.values():
        if result.valid or not result.error:
            continue
        lines.append(f'Error: {result.error}')
        if result.suggestions:
            lines.append(f'  Did you mean: {", ".join(result.suggestions)}?')
        if result.allowed_values:
            lines.append(f'  Valid options: {format_allowed_values(result.allowed_values, max_display)}')
        lines.append('')

    return '\n'.join(lines).rstrip()

"""Formatting of raw field values to the shape expected by the Jira API for the type of each field."""

from datetime import datetime, timezone
from enum import Enum
import logging
import math
from typing import Any

from dateutil import parser as date_parser
from dateutil.parser import isoparse

from ticketnorm.constants import (
    ALLOWED_VALUE_FORMAT_SAMPLE_SIZE,
    LOGGER_NAME,
    PASS_THROUGH_DESCRIPTION,
)
from ticketnorm.models import (
    AllowedValue,
    BatchFormattingResult,
    FieldFormattingError,
    FieldPair,
    FormattedField,
    FormattingResult,
    ResolvedField,
)

logger = logging.getLogger(LOGGER_NAME)

FORMATTED_OBJECT_KEYS = ('value', 'name', 'id', 'accountId', 'key')


class ValueShape(Enum):
    """The payload shapes a field value can be formatted to."""

    ARRAY = 'array'
    OPTION = 'option'
    USER = 'user'
    PRIORITY = 'priority'
    RESOLUTION = 'resolution'
    VERSION = 'version'
    COMPONENT = 'component'
    NUMBER = 'number'
    DATE = 'date'
    DATETIME = 'datetime'
    CASCADING = 'cascading'
    PASS_THROUGH = 'pass-through'


class AllowedValueFormat(Enum):
    NAME = 'name'
    VALUE = 'value'
    ID = 'id'


def _classify_custom_type(custom_type: str) -> ValueShape | None:
    # the multi variants contain the name of their single counterpart, e.g. multiselect and select
    if any(name in custom_type for name in ('multiselect', 'multicheckboxes', 'multiuserpicker')):
        return ValueShape.ARRAY
    if 'cascadingselect' in custom_type:
        return ValueShape.CASCADING
    if 'select' in custom_type or 'radiobuttons' in custom_type:
        return ValueShape.OPTION
    if 'userpicker' in custom_type:
        return ValueShape.USER
    if 'float' in custom_type:
        return ValueShape.NUMBER
    if 'datepicker' in custom_type:
        return ValueShape.DATE
    if 'datetime' in custom_type:
        return ValueShape.DATETIME
    return None


def classify_field(field: ResolvedField) -> ValueShape:
    """Determine the payload shape of a field from its schema type, its id and its custom type."""
    schema_type = field.metadata.schema.type

    if schema_type == 'array':
        return ValueShape.ARRAY
    if schema_type == 'option':
        return ValueShape.OPTION
    if schema_type == 'user':
        return ValueShape.USER
    if schema_type == 'priority' or field.key == 'priority':
        return ValueShape.PRIORITY
    if schema_type == 'resolution' or field.key == 'resolution':
        return ValueShape.RESOLUTION
    if schema_type == 'version' or field.key in ('fixVersions', 'versions'):
        return ValueShape.VERSION
    if schema_type == 'component' or field.key == 'components':
        return ValueShape.COMPONENT
    if schema_type == 'number':
        return ValueShape.NUMBER
    if schema_type == 'date':
        return ValueShape.DATE
    if schema_type == 'datetime':
        return ValueShape.DATETIME

    if custom_type := field.metadata.schema.custom:
        if (shape := _classify_custom_type(custom_type)) is not None:
            return shape
    return ValueShape.PASS_THROUGH


def _is_already_formatted(value: Any) -> bool:
    return isinstance(value, dict) and any(key in value for key in FORMATTED_OBJECT_KEYS)


def _is_formatted_array(value: Any) -> bool:
    return isinstance(value, list) and all(_is_already_formatted(item) for item in value)


def _describe(key: str, value: Any) -> str:
    return f'{{"{key}": "{value}"}}'


def _find_matching_allowed_value(
    candidate: str, allowed_values: list[AllowedValue]
) -> AllowedValue | None:
    return next((allowed for allowed in allowed_values if allowed.matches(candidate)), None)


def detect_allowed_value_format(allowed_values: list[AllowedValue]) -> AllowedValueFormat:
    """Detect how the members of an array field reference the allowed values.

    Components are referenced with `{"name": ...}`, options with `{"value": ...}` and some fields only accept
    `{"id": ...}`. Only the first few allowed values are inspected.
    """
    if not allowed_values:
        return AllowedValueFormat.VALUE

    sample = allowed_values[:ALLOWED_VALUE_FORMAT_SAMPLE_SIZE]
    if any(allowed.name and not allowed.value for allowed in sample):
        return AllowedValueFormat.NAME
    if any(allowed.value for allowed in sample):
        return AllowedValueFormat.VALUE
    if all(allowed.id and not allowed.name and not allowed.value for allowed in sample):
        return AllowedValueFormat.ID
    if any(allowed.name for allowed in sample):
        return AllowedValueFormat.NAME
    return AllowedValueFormat.VALUE


def _format_option(field: ResolvedField, value: Any) -> FormattingResult:
    if _is_already_formatted(value):
        return FormattingResult(
            success=True,
            original_value=value,
            formatted_value=value,
            format_description='pre-formatted object',
        )

    string_value = str(value)
    match = _find_matching_allowed_value(string_value, field.metadata.allowed_values)
    option = (match.value or match.name) if match else string_value
    return FormattingResult(
        success=True,
        original_value=value,
        formatted_value={'value': option},
        format_description=_describe('value', option),
    )


def _format_array(field: ResolvedField, value: Any) -> FormattingResult:
    if _is_formatted_array(value):
        return FormattingResult(
            success=True,
            original_value=value,
            formatted_value=value,
            format_description='pre-formatted array',
        )

    if isinstance(value, str):
        items = [item.strip() for item in value.split(',') if item.strip()]
    elif isinstance(value, list):
        items = [str(item) for item in value]
    else:
        items = [str(value)]

    item_type = field.metadata.schema.items
    allowed_values = field.metadata.allowed_values
    formatted_items: list[dict[str, str]] = []

    if item_type in ('option', 'string'):
        for item in items:
            match = _find_matching_allowed_value(item, allowed_values)
            formatted_items.append({'value': (match.value or match.name) if match else item})
    elif item_type == 'user':
        formatted_items = [{'accountId': item} for item in items]
    else:
        value_format = detect_allowed_value_format(allowed_values)
        for item in items:
            match = _find_matching_allowed_value(item, allowed_values)
            if value_format == AllowedValueFormat.NAME:
                formatted_items.append({'name': match.name if match and match.name else item})
            elif value_format == AllowedValueFormat.ID:
                formatted_items.append({'id': match.id if match and match.id else item})
            else:
                formatted_items.append(
                    {'value': (match.value or match.name) if match else item}
                )

    descriptions = [_describe(*next(iter(item.items()))) for item in formatted_items]
    return FormattingResult(
        success=True,
        original_value=value,
        formatted_value=formatted_items,
        format_description=f'[{", ".join(descriptions)}]',
    )


def _format_user(field: ResolvedField, value: Any) -> FormattingResult:
    if _is_already_formatted(value):
        return FormattingResult(
            success=True,
            original_value=value,
            formatted_value=value,
            format_description='pre-formatted user object',
        )
    account_id = str(value)
    return FormattingResult(
        success=True,
        original_value=value,
        formatted_value={'accountId': account_id},
        format_description=_describe('accountId', account_id),
    )


def _format_priority(field: ResolvedField, value: Any) -> FormattingResult:
    if _is_already_formatted(value):
        return FormattingResult(
            success=True,
            original_value=value,
            formatted_value=value,
            format_description='pre-formatted priority object',
        )

    string_value = str(value)
    match = _find_matching_allowed_value(string_value, field.metadata.allowed_values)
    if match:
        return FormattingResult(
            success=True,
            original_value=value,
            formatted_value={'id': match.id},
            format_description=_describe('id', match.id),
        )
    return FormattingResult(
        success=True,
        original_value=value,
        formatted_value={'name': string_value},
        format_description=_describe('name', string_value),
    )


def _format_named_object(field: ResolvedField, value: Any, object_type: str) -> FormattingResult:
    if _is_already_formatted(value):
        return FormattingResult(
            success=True,
            original_value=value,
            formatted_value=value,
            format_description=f'pre-formatted {object_type} object',
        )
    string_value = str(value)
    return FormattingResult(
        success=True,
        original_value=value,
        formatted_value={'name': string_value},
        format_description=_describe('name', string_value),
    )


def _format_number(field: ResolvedField, value: Any) -> FormattingResult:
    if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
        return FormattingResult(
            success=True, original_value=value, formatted_value=value, format_description='number'
        )

    number: int | float | None = None
    if isinstance(value, str):
        candidate = value.strip()
        try:
            number = int(candidate)
        except ValueError:
            try:
                number = float(candidate)
            except ValueError:
                number = None
        if number is not None and not math.isfinite(number):
            number = None

    if number is None:
        return FormattingResult(
            success=False,
            original_value=value,
            error=f'Invalid number value for field "{field.display_name}": {value}',
        )
    return FormattingResult(
        success=True, original_value=value, formatted_value=number, format_description=f'{number}'
    )


def _parse_datetime(value: Any) -> datetime | None:
    string_value = str(value).strip()
    if not string_value:
        return None
    try:
        return isoparse(string_value)
    except ValueError:
        pass
    try:
        return date_parser.parse(string_value)
    except (ValueError, OverflowError):
        return None


def _to_utc(parsed: datetime) -> datetime | None:
    # an offset can move a timestamp outside of years 1 to 9999
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError:
        return None


def _format_date(field: ResolvedField, value: Any) -> FormattingResult:
    parsed = _parse_datetime(value)
    if parsed is not None and parsed.tzinfo is not None:
        parsed = _to_utc(parsed)
    if parsed is None:
        return FormattingResult(
            success=False,
            original_value=value,
            error=f'Invalid date value for field "{field.display_name}": {value}. Use format YYYY-MM-DD',
        )
    formatted = parsed.date().isoformat()
    return FormattingResult(
        success=True, original_value=value, formatted_value=formatted, format_description=formatted
    )


def _format_datetime(field: ResolvedField, value: Any) -> FormattingResult:
    parsed = _parse_datetime(value)
    if parsed is not None:
        # naive timestamps are UTC
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        parsed = _to_utc(parsed)
    if parsed is None:
        return FormattingResult(
            success=False,
            original_value=value,
            error=f'Invalid datetime value for field "{field.display_name}": {value}. Use ISO format',
        )
    formatted = parsed.isoformat(timespec='milliseconds').replace('+00:00', 'Z')
    return FormattingResult(
        success=True, original_value=value, formatted_value=formatted, format_description=formatted
    )


def format_field_value(field: ResolvedField, value: Any) -> FormattingResult:
    """Format a value to the shape expected by the API for the type of the field.

    Formatting never validates the value against the allowed values of the field; values that do not match any
    allowed value are still wrapped so that the validator can report them.

    Args:
        field: the resolved field.
        value: the raw value, a string or a value parsed from JSON.

    Returns:
        An instance of `FormattingResult`. On success `format_description` describes the payload, e.g.
        `{"value": "High"}`.
    """
    shape = classify_field(field)

    if shape == ValueShape.ARRAY:
        return _format_array(field, value)
    if shape == ValueShape.OPTION:
        return _format_option(field, value)
    if shape == ValueShape.USER:
        return _format_user(field, value)
    if shape == ValueShape.PRIORITY:
        return _format_priority(field, value)
    if shape in (ValueShape.RESOLUTION, ValueShape.VERSION, ValueShape.COMPONENT):
        return _format_named_object(field, value, shape.value)
    if shape == ValueShape.NUMBER:
        return _format_number(field, value)
    if shape == ValueShape.DATE:
        return _format_date(field, value)
    if shape == ValueShape.DATETIME:
        return _format_datetime(field, value)
    if shape == ValueShape.CASCADING:
        return FormattingResult(
            success=True,
            original_value=value,
            formatted_value=value,
            format_description='cascading select (pass-through)',
        )
    return FormattingResult(
        success=True,
        original_value=value,
        formatted_value=value,
        format_description=PASS_THROUGH_DESCRIPTION,
    )


def format_field_values(
    resolved_fields: dict[str, ResolvedField], field_pairs: list[FieldPair]
) -> BatchFormattingResult:
    """Format every value, collecting all the failures. Values of unresolved names are kept as-is."""
    batch = BatchFormattingResult()

    for pair in field_pairs:
        field = resolved_fields.get(pair.name)
        if field is None:
            batch.formatted[pair.name] = FormattedField(
                value=pair.value, description='unresolved (pass-through)'
            )
            continue

        result = format_field_value(field, pair.value)
        if result.success:
            batch.formatted[pair.name] = FormattedField(
                value=result.formatted_value, description=result.format_description or 'formatted'
            )
        else:
            logger.debug(
                'Unable to format field value', extra={'field': field.key, 'error': result.error}
            )
            batch.errors.append(
                FieldFormattingError(name=pair.name, error=result.error or 'Unknown formatting error')
            )
            batch.success = False

    return batch

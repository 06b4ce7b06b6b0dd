"""Processing of `name=value` field arguments into the custom fields of a create or update request."""

import json
import logging

from ticketnorm.cache import FieldSchemaCache
from ticketnorm.config import get_configuration
from ticketnorm.constants import LOGGER_NAME, PASS_THROUGH_DESCRIPTION
from ticketnorm.exceptions import (
    FieldFormattingException,
    FieldResolutionException,
    FieldValidationException,
)
from ticketnorm.fields.formatter import format_field_values
from ticketnorm.fields.resolver import resolve_field_names
from ticketnorm.fields.validator import format_validation_errors, validate_field_values
from ticketnorm.models import FieldPair, FieldResolutionError, ProcessedCustomFields

logger = logging.getLogger(LOGGER_NAME)


def parse_field_pairs(fields: list[str] | None) -> list[FieldPair]:
    """Parse `name=value` arguments.

    The value is parsed as JSON when possible so that objects, lists and numbers can be given, otherwise it is
    kept as a string. Arguments without `=` or without a name are skipped.
    """
    pairs: list[FieldPair] = []

    for field in fields or []:
        name, separator, raw_value = field.partition('=')
        if not separator:
            logger.warning(f"Invalid field format '{field}', expected 'fieldName=value'")
            continue

        name = name.strip()
        raw_value = raw_value.strip()
        if not name:
            logger.warning(f"Empty field name in '{field}'")
            continue

        try:
            value = json.loads(raw_value)
        except json.JSONDecodeError:
            value = raw_value
        pairs.append(FieldPair(name=name, value=value))

    return pairs


def format_resolution_errors(errors: list[FieldResolutionError]) -> str:
    lines = []
    for error in errors:
        lines.append(f'Error: {error.error}')
        if error.suggestions:
            lines.append(f'  Did you mean: {", ".join(error.suggestions)}?')
    return '\n'.join(lines)


async def process_custom_fields(
    cache: FieldSchemaCache, project_key: str, issue_type: str, fields: list[str] | None
) -> ProcessedCustomFields:
    """Resolve, format and validate `name=value` field arguments.

    Each stage processes every field before failing so that all the problems are reported at once. No value is
    returned when any field fails.

    Args:
        cache: the cache of field metadata.
        project_key: the key of the project of the work item.
        issue_type: the name of the type of the work item.
        fields: the `name=value` arguments.

    Returns:
        The formatted values keyed by field id, the resolved fields and a description of the steps applied.

    Raises:
        FieldResolutionException: if a field name can not be resolved.
        FieldFormattingException: if a value can not be converted to the type of its field.
        FieldValidationException: if a value is not one of the allowed values of its field.
    """
    configuration = get_configuration()
    processed = ProcessedCustomFields()
    field_pairs = parse_field_pairs(fields)
    if not field_pairs:
        return processed

    processed.progress.append('Resolving custom field names...')
    resolution = await resolve_field_names(
        cache,
        project_key,
        issue_type,
        [pair.name for pair in field_pairs],
        configuration.max_suggestions,
    )
    if not resolution.success:
        raise FieldResolutionException(
            format_resolution_errors(resolution.errors),
            resolution.errors,
            extra={'project_key': project_key, 'issue_type': issue_type},
        )

    for original_name, resolved_field in resolution.resolved.items():
        if original_name != resolved_field.key:
            processed.progress.append(
                f'  "{original_name}" -> {resolved_field.key} ({resolved_field.type})'
            )

    processed.progress.append('Formatting field values...')
    formatting = format_field_values(resolution.resolved, field_pairs)
    if not formatting.success:
        raise FieldFormattingException(
            '\n'.join(f'Error formatting "{error.name}": {error.error}' for error in formatting.errors),
            formatting.errors,
            extra={'project_key': project_key, 'issue_type': issue_type},
        )

    for name, formatted_field in formatting.formatted.items():
        resolved_field = resolution.resolved.get(name)
        if resolved_field and formatted_field.description != PASS_THROUGH_DESCRIPTION:
            processed.progress.append(
                f'  {resolved_field.display_name}: {formatted_field.description}'
            )

    processed.progress.append('Validating field values...')
    formatted_pairs = [
        FieldPair(name=pair.name, value=formatting.formatted[pair.name].value) for pair in field_pairs
    ]
    validation = validate_field_values(
        resolution.resolved, formatted_pairs, configuration.max_suggestions
    )
    if not validation.valid:
        raise FieldValidationException(
            format_validation_errors(validation.results, configuration.allowed_values_max_display),
            [result for result in validation.results.values() if not result.valid],
            extra={'project_key': project_key, 'issue_type': issue_type},
        )

    for pair in field_pairs:
        resolved_field = resolution.resolved[pair.name]
        processed.custom_fields[resolved_field.key] = formatting.formatted[pair.name].value
    processed.resolved = resolution.resolved

    for line in processed.progress:
        logger.info(line)
    return processed

"""Resolution of human-readable field names to the internal ids of Jira fields."""

import logging
import re

from ticketnorm.cache import FieldSchemaCache
from ticketnorm.constants import BUILTIN_FIELD_IDS, CUSTOM_FIELD_ID_PATTERN, LOGGER_NAME, MAX_SUGGESTIONS
from ticketnorm.models import (
    BatchResolutionResult,
    FieldResolutionError,
    FieldResolutionResult,
    FieldSchemaEntry,
    ResolvedField,
)
from ticketnorm.utils.similarity import find_similar

logger = logging.getLogger(LOGGER_NAME)


def is_internal_field_id(name: str) -> bool:
    """Check if a field name looks like the internal id of a field, e.g. `customfield_10001` or `duedate`."""
    return re.match(CUSTOM_FIELD_ID_PATTERN, name) is not None or name in BUILTIN_FIELD_IDS


async def _resolve_internal_field_id(
    cache: FieldSchemaCache, project_key: str, issue_type: str, field_id: str
) -> FieldResolutionResult:
    metadata: FieldSchemaEntry | None = None
    try:
        fields = await cache.fetch(project_key, issue_type)
        metadata = fields.get(field_id)
    except Exception as e:
        # the id may still be accepted by the API; send the value as-is
        logger.warning(
            f'Unable to retrieve the metadata of field {field_id}: {e}',
            extra={'project_key': project_key, 'issue_type': issue_type},
        )

    if metadata is None:
        metadata = FieldSchemaEntry.untyped(field_id)
    return FieldResolutionResult(success=True, resolved=ResolvedField.from_schema(field_id, metadata))


async def resolve_field_name(
    cache: FieldSchemaCache,
    project_key: str,
    issue_type: str,
    field_name: str,
    max_suggestions: int = MAX_SUGGESTIONS,
) -> FieldResolutionResult:
    """Resolve a field name to the metadata of the field.

    Internal ids are always accepted; their metadata is attached when available. Other names are matched
    case-insensitively against the display names of the fields available for the issue type.

    Args:
        cache: the cache of field metadata.
        project_key: the key of the project.
        issue_type: the name of the issue type.
        field_name: the name typed by the user, e.g. `Severity` or `customfield_10001`.
        max_suggestions: the maximum number of similar names suggested when the field does not exist.

    Returns:
        An instance of `FieldResolutionResult` with the resolved field or the reason of the failure.
    """
    if is_internal_field_id(field_name):
        return await _resolve_internal_field_id(cache, project_key, issue_type, field_name)

    try:
        fields = await cache.fetch(project_key, issue_type)
    except Exception as e:
        logger.error(
            'Failed to fetch field metadata',
            extra={'error': str(e), 'project_key': project_key, 'issue_type': issue_type},
        )
        return FieldResolutionResult(success=False, error=str(e) or 'Failed to fetch field metadata')

    field_name_lower = field_name.lower()
    for metadata in fields.values():
        if metadata.name.lower() == field_name_lower:
            return FieldResolutionResult(
                success=True, resolved=ResolvedField.from_schema(field_name, metadata)
            )

    suggestions = find_similar(
        field_name, [metadata.name for metadata in fields.values()], max_suggestions
    )
    return FieldResolutionResult(
        success=False,
        error=f"Field '{field_name}' not found in project {project_key} for issue type '{issue_type}'",
        suggestions=suggestions or None,
    )


async def resolve_field_names(
    cache: FieldSchemaCache,
    project_key: str,
    issue_type: str,
    field_names: list[str],
    max_suggestions: int = MAX_SUGGESTIONS,
) -> BatchResolutionResult:
    """Resolve every name, one after the other, collecting all the failures."""
    batch = BatchResolutionResult()
    for name in field_names:
        result = await resolve_field_name(cache, project_key, issue_type, name, max_suggestions)
        if result.success and result.resolved:
            batch.resolved[name] = result.resolved
        else:
            batch.errors.append(
                FieldResolutionError(
                    name=name,
                    error=result.error or 'Unknown error',
                    suggestions=result.suggestions,
                )
            )
    return batch

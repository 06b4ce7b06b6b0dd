"""Cache of the field metadata used to resolve, format and validate field values."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

import yaml

from ticketnorm.constants import LOGGER_NAME
from ticketnorm.exceptions import IssueTypeNotFoundException, ProjectNotFoundException
from ticketnorm.models import FieldSchemaEntry

logger = logging.getLogger(LOGGER_NAME)


class SchemaProvider(Protocol):
    """Source of create-metadata documents, e.g. a Jira API client."""

    async def get_create_meta(self, project_key: str) -> dict: ...


class StaticSchemaProvider:
    """Serves create-metadata documents held in memory or loaded from a JSON or YAML file.

    The document has the shape returned by Jira's createmeta endpoint:

    {
        'projects': [
            {
                'key': 'PROJ',
                'issuetypes': [{'name': 'Task', 'fields': {'customfield_10001': {'name': 'Severity', ...}}}],
            }
        ]
    }
    """

    def __init__(self, create_meta: dict):
        self.create_meta = create_meta

    @classmethod
    def from_file(cls, path: str | Path) -> StaticSchemaProvider:
        schema_file = Path(path).expanduser()
        content = schema_file.read_text(encoding='utf-8')
        if schema_file.suffix.lower() in ('.yaml', '.yml'):
            data = yaml.safe_load(content)
        else:
            data = json.loads(content)
        if not isinstance(data, dict):
            raise ValueError(f'The schema file {schema_file} does not hold a createmeta document')
        return cls(data)

    async def get_create_meta(self, project_key: str) -> dict:
        return self.create_meta


class FieldSchemaCache:
    """Field metadata cached per project and issue type.

    Entries never expire; they live as long as the cache object or until `clear()` is called.
    """

    def __init__(self, provider: SchemaProvider):
        self.provider = provider
        self._cache: dict[str, dict[str, FieldSchemaEntry]] = {}

    def _make_key(self, project_key: str, issue_type: str) -> str:
        return f'{project_key.upper()}:{issue_type.lower()}'

    def get(self, project_key: str, issue_type: str) -> dict[str, FieldSchemaEntry] | None:
        return self._cache.get(self._make_key(project_key, issue_type))

    async def fetch(self, project_key: str, issue_type: str) -> dict[str, FieldSchemaEntry]:
        """Retrieve the metadata of the fields available to create work items of a type.

        Args:
            project_key: the key of the project, compared case-insensitively.
            issue_type: the name of the issue type, compared case-insensitively.

        Returns:
            A dictionary of the field metadata keyed by field id.

        Raises:
            ProjectNotFoundException: if the project is not in the create-metadata.
            IssueTypeNotFoundException: if the project does not have the issue type.
        """
        if (fields := self.get(project_key, issue_type)) is not None:
            return fields

        logger.debug(
            'Fetching field metadata', extra={'project_key': project_key, 'issue_type': issue_type}
        )
        create_meta = await self.provider.get_create_meta(project_key)
        fields = self._extract_fields(create_meta, project_key, issue_type)
        self._cache[self._make_key(project_key, issue_type)] = fields
        return fields

    @staticmethod
    def _extract_fields(
        create_meta: dict, project_key: str, issue_type: str
    ) -> dict[str, FieldSchemaEntry]:
        project = next(
            (
                item
                for item in create_meta.get('projects') or []
                if str(item.get('key', '')).upper() == project_key.upper()
            ),
            None,
        )
        if project is None:
            raise ProjectNotFoundException(project_key, extra={'project_key': project_key})

        issue_types: list[dict] = project.get('issuetypes') or []
        issue_type_meta = next(
            (item for item in issue_types if str(item.get('name', '')).lower() == issue_type.lower()),
            None,
        )
        if issue_type_meta is None:
            raise IssueTypeNotFoundException(
                issue_type,
                project_key,
                [str(item.get('name', '')) for item in issue_types],
                extra={'project_key': project_key, 'issue_type': issue_type},
            )

        return {
            field_id: FieldSchemaEntry.from_create_meta(field_id, metadata)
            for field_id, metadata in (issue_type_meta.get('fields') or {}).items()
            if isinstance(metadata, dict)
        }

    def clear(self) -> None:
        self._cache.clear()

    def get_stats(self) -> dict[str, Any]:
        return {
            'total_entries': len(self._cache),
            'cached_pairs': list(self._cache.keys()),
        }

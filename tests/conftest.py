import copy

import pytest

from ticketnorm.cache import FieldSchemaCache, StaticSchemaProvider
from ticketnorm.config import CONFIGURATION, ApplicationConfiguration
from ticketnorm.models import FieldSchemaEntry, ResolvedField

SELECT = 'com.atlassian.jira.plugin.system.customfieldtypes:select'
FLOAT = 'com.atlassian.jira.plugin.system.customfieldtypes:float'
DATETIME = 'com.atlassian.jira.plugin.system.customfieldtypes:datetime'
MULTI_USER_PICKER = 'com.atlassian.jira.plugin.system.customfieldtypes:multiuserpicker'
MULTI_SELECT = 'com.atlassian.jira.plugin.system.customfieldtypes:multiselect'
TEXTAREA = 'com.atlassian.jira.plugin.system.customfieldtypes:textarea'

CREATE_META = {
    'projects': [
        {
            'key': 'PROJ',
            'name': 'Project',
            'issuetypes': [
                {
                    'name': 'Task',
                    'fields': {
                        'summary': {
                            'name': 'Summary',
                            'required': True,
                            'schema': {'type': 'string', 'system': 'summary'},
                        },
                        'priority': {
                            'name': 'Priority',
                            'required': False,
                            'schema': {'type': 'priority', 'system': 'priority'},
                            'allowedValues': [{'id': '1', 'name': 'High'}, {'id': '2', 'name': 'Low'}],
                        },
                        'duedate': {
                            'name': 'Due Date',
                            'schema': {'type': 'date', 'system': 'duedate'},
                        },
                        'labels': {
                            'name': 'Labels',
                            'schema': {'type': 'array', 'items': 'string', 'system': 'labels'},
                        },
                        'components': {
                            'name': 'Components',
                            'schema': {'type': 'array', 'items': 'component', 'system': 'components'},
                            'allowedValues': [
                                {'id': '10', 'name': 'Backend'},
                                {'id': '11', 'name': 'Frontend'},
                            ],
                        },
                        'customfield_10001': {
                            'name': 'Severity',
                            'schema': {'type': 'option', 'custom': SELECT, 'customId': 10001},
                            'allowedValues': [
                                {'id': '100', 'value': 'Critical'},
                                {'id': '101', 'value': 'Major'},
                                {'id': '102', 'value': 'Minor'},
                            ],
                        },
                        'customfield_10002': {
                            'name': 'Story Points',
                            'schema': {'type': 'number', 'custom': FLOAT, 'customId': 10002},
                        },
                        'customfield_10003': {
                            'name': 'Deployed At',
                            'schema': {'type': 'datetime', 'custom': DATETIME, 'customId': 10003},
                        },
                        'customfield_10004': {
                            'name': 'Reviewers',
                            'schema': {'type': 'array', 'items': 'user', 'custom': MULTI_USER_PICKER},
                        },
                        'customfield_10005': {
                            'name': 'Platforms',
                            'schema': {'type': 'array', 'items': 'option', 'custom': MULTI_SELECT},
                            'allowedValues': [
                                {'id': '200', 'value': 'iOS'},
                                {'id': '201', 'value': 'Android'},
                            ],
                        },
                        'customfield_10006': {
                            'name': 'Environment Notes',
                            'schema': {'type': 'string', 'custom': TEXTAREA},
                        },
                    },
                },
                {
                    'name': 'Bug',
                    'fields': {
                        'summary': {
                            'name': 'Summary',
                            'required': True,
                            'schema': {'type': 'string', 'system': 'summary'},
                        },
                    },
                },
            ],
        }
    ]
}


class RecordingSchemaProvider(StaticSchemaProvider):
    """Serves a createmeta document and records the project keys requested."""

    def __init__(self, create_meta: dict):
        super().__init__(create_meta)
        self.calls: list[str] = []

    async def get_create_meta(self, project_key: str) -> dict:
        self.calls.append(project_key)
        return await super().get_create_meta(project_key)


class FailingSchemaProvider:
    async def get_create_meta(self, project_key: str) -> dict:
        raise RuntimeError('connection refused')


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    monkeypatch.setenv('TICKETNORM_CONFIG_FILE', str(tmp_path / 'missing-config.yaml'))
    monkeypatch.setenv('TICKETNORM_LOG_FILE', '')
    for name in ('TICKETNORM_LOG_LEVEL', 'TICKETNORM_MAX_SUGGESTIONS', 'TICKETNORM_SCHEMA_FILE'):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def mock_configuration(isolated_environment):
    config = ApplicationConfiguration(
        log_file='',
        log_level='WARNING',
        allowed_values_max_display=10,
        max_suggestions=3,
        default_issue_type='Task',
        schema_file=None,
    )

    token = CONFIGURATION.set(config)

    yield config

    CONFIGURATION.reset(token)


@pytest.fixture
def create_meta() -> dict:
    return copy.deepcopy(CREATE_META)


@pytest.fixture
def schema_provider(create_meta) -> RecordingSchemaProvider:
    return RecordingSchemaProvider(create_meta)


@pytest.fixture
def schema_cache(schema_provider) -> FieldSchemaCache:
    return FieldSchemaCache(schema_provider)


@pytest.fixture
def failing_schema_cache() -> FieldSchemaCache:
    return FieldSchemaCache(FailingSchemaProvider())


@pytest.fixture
def task_fields(create_meta) -> dict[str, FieldSchemaEntry]:
    fields = create_meta['projects'][0]['issuetypes'][0]['fields']
    return {key: FieldSchemaEntry.from_create_meta(key, data) for key, data in fields.items()}


@pytest.fixture
def resolve(task_fields):
    """Build the resolved field of a field id of the Task issue type."""

    def _resolve(field_id: str) -> ResolvedField:
        metadata = task_fields[field_id]
        return ResolvedField.from_schema(metadata.name, metadata)

    return _resolve

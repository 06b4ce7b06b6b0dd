from enum import Enum

LOGGER_NAME = 'ticketnorm'
"""Application logger name identifier."""

LOG_FILE_FILE_NAME = 'ticketnorm.log'
"""Default log file name."""

CONFIG_FILE_NAME = 'config.yaml'
"""Default configuration file name."""

ADF_VERSION = 1
"""Version marker of the ADF documents produced by the converter."""

MAX_SUGGESTIONS = 3
"""Maximum number of near-match suggestions returned for a field name or value."""

SUGGESTION_MIN_DISTANCE = 3
"""Minimum edit distance bound used when searching for near matches."""

SUGGESTION_DISTANCE_RATIO = 0.5
"""Edit distance bound relative to the length of the query."""

ALLOWED_VALUES_MAX_DISPLAY = 10
"""Number of allowed values displayed before the list is truncated."""

ALLOWED_VALUE_FORMAT_SAMPLE_SIZE = 3
"""Number of allowed values inspected to detect the shape of array members."""

CUSTOM_FIELD_ID_PATTERN = r'^customfield_\d+$'
"""Pattern of the internal identifiers of custom fields."""

BUILTIN_FIELD_IDS = [
    'summary',
    'description',
    'assignee',
    'reporter',
    'priority',
    'status',
    'labels',
    'components',
    'fixVersions',
    'versions',
    'issuetype',
    'project',
    'parent',
    'duedate',
    'environment',
    'resolution',
    'resolutiondate',
    'created',
    'updated',
]
"""System field ids that are accepted as-is by the field resolver."""

CODE_BLOCK_LANGUAGES = [
    'bash',
    'json',
    'javascript',
    'typescript',
    'python',
    'java',
    'csharp',
    'c#',
    'sql',
    'xml',
    'html',
    'css',
    'yaml',
    'yml',
    'shell',
    'powershell',
    'go',
    'rust',
    'ruby',
    'php',
]
"""Language names recognized when a paragraph is used as the caption of a code block."""

CODE_BLOCK_LANGUAGE_ALIASES = {'c#': 'csharp'}
"""Normalized spelling of some code block languages."""

PASS_THROUGH_DESCRIPTION = 'pass-through (text/string)'
"""Format description of values sent unchanged."""


class ConversionWarningCategory(Enum):
    """Categories of the warnings collected while converting ADF to Markdown."""

    ERROR = 'error'
    TASK_LIST = 'task-list'
    UNDERLINE = 'underline'
    TEXT_COLOR = 'text-color'
    MEDIA = 'media'
    UNSUPPORTED_NODE = 'unsupported-node'
    UNSUPPORTED_MARK = 'unsupported-mark'

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
import re
from typing import Any

from ticketnorm.constants import CUSTOM_FIELD_ID_PATTERN


def custom_as_dict_factory(data) -> dict:
    def convert_value(obj):
        if isinstance(obj, Enum):
            return obj.value
        return obj

    return {k: convert_value(v) for k, v in data}


@dataclass
class BaseModel:
    def as_dict(self) -> dict:
        """Dumps dataclass into dictionary.

        Enum members are dumped as their values.
        """

        return dataclasses.asdict(self, dict_factory=custom_as_dict_factory)


def is_custom_field_id(key: str) -> bool:
    return re.match(CUSTOM_FIELD_ID_PATTERN, key) is not None


@dataclass
class AllowedValue(BaseModel):
    """One legal choice of an enumerated field."""

    id: str
    name: str = ''
    value: str | None = None

    @property
    def display(self) -> str:
        return self.value or self.name or self.id

    def matches(self, candidate: str) -> bool:
        """Case-insensitive match on the name or value token, exact match on the id."""
        candidate_lower = candidate.lower()
        return (
            (bool(self.name) and self.name.lower() == candidate_lower)
            or (bool(self.value) and self.value.lower() == candidate_lower)
            or (bool(self.id) and self.id == candidate)
        )

    @classmethod
    def from_dict(cls, data: dict) -> 'AllowedValue':
        value = data.get('value')
        return cls(
            id=str(data.get('id', '')),
            name=str(data.get('name') or ''),
            value=str(value) if value is not None else None,
        )


@dataclass
class FieldSchemaType(BaseModel):
    type: str
    items: str | None = None
    custom: str | None = None
    custom_id: int | None = None

    @property
    def display(self) -> str:
        if self.type == 'array' and self.items:
            return f'array<{self.items}>'
        if self.custom:
            # com.atlassian.jira.plugin.system.customfieldtypes:select -> select
            return self.custom.rsplit(':', 1)[-1]
        return self.type


@dataclass
class FieldSchemaEntry(BaseModel):
    """Metadata of a field available to create or update a work item."""

    key: str
    name: str
    schema: FieldSchemaType
    required: bool = False
    allowed_values: list[AllowedValue] = field(default_factory=list)
    has_default_value: bool = False
    default_value: Any = None

    @property
    def is_custom(self) -> bool:
        return is_custom_field_id(self.key)

    @classmethod
    def from_create_meta(cls, key: str, data: dict) -> 'FieldSchemaEntry':
        schema: dict = data.get('schema') or {}
        return cls(
            key=key,
            name=data.get('name') or key,
            required=bool(data.get('required', False)),
            schema=FieldSchemaType(
                type=schema.get('type') or 'unknown',
                items=schema.get('items'),
                custom=schema.get('custom'),
                custom_id=schema.get('customId'),
            ),
            allowed_values=[
                AllowedValue.from_dict(value)
                for value in data.get('allowedValues') or []
                if isinstance(value, dict)
            ],
            has_default_value=bool(data.get('hasDefaultValue', False)),
            default_value=data.get('defaultValue'),
        )

    @classmethod
    def untyped(cls, key: str) -> 'FieldSchemaEntry':
        return cls(key=key, name=key, schema=FieldSchemaType(type='unknown'))


@dataclass
class ResolvedField(BaseModel):
    original_name: str
    key: str
    display_name: str
    type: str
    is_custom: bool
    metadata: FieldSchemaEntry

    @classmethod
    def from_schema(cls, original_name: str, metadata: FieldSchemaEntry) -> 'ResolvedField':
        return cls(
            original_name=original_name,
            key=metadata.key,
            display_name=metadata.name,
            type=metadata.schema.type,
            is_custom=metadata.is_custom,
            metadata=metadata,
        )


@dataclass
class FieldResolutionResult(BaseModel):
    success: bool
    resolved: ResolvedField | None = None
    error: str | None = None
    suggestions: list[str] | None = None


@dataclass
class FieldResolutionError(BaseModel):
    name: str
    error: str
    suggestions: list[str] | None = None


@dataclass
class BatchResolutionResult(BaseModel):
    resolved: dict[str, ResolvedField] = field(default_factory=dict)
    errors: list[FieldResolutionError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass
class FormattingResult(BaseModel):
    success: bool
    original_value: Any = None
    formatted_value: Any = None
    format_description: str | None = None
    error: str | None = None


@dataclass
class FormattedField(BaseModel):
    value: Any
    description: str


@dataclass
class FieldFormattingError(BaseModel):
    name: str
    error: str


@dataclass
class BatchFormattingResult(BaseModel):
    success: bool = True
    formatted: dict[str, FormattedField] = field(default_factory=dict)
    errors: list[FieldFormattingError] = field(default_factory=list)


@dataclass
class ValueValidationResult(BaseModel):
    valid: bool
    normalized_value: Any = None
    error: str | None = None
    allowed_values: list[AllowedValue] | None = None
    suggestions: list[str] | None = None


@dataclass
class BatchValidationResult(BaseModel):
    valid: bool = True
    results: dict[str, ValueValidationResult] = field(default_factory=dict)


@dataclass
class FieldPair(BaseModel):
    name: str
    value: Any


@dataclass
class ProcessedCustomFields(BaseModel):
    custom_fields: dict[str, Any] = field(default_factory=dict)
    """Formatted values keyed by the internal id of the field, ready for an API request body."""
    resolved: dict[str, ResolvedField] = field(default_factory=dict)
    progress: list[str] = field(default_factory=list)
    """Human-readable description of the resolution and formatting applied to every field."""


@dataclass
class ConversionResult(BaseModel):
    result: str = ''
    warnings: dict[str, list[str]] = field(default_factory=dict)

    @property
    def has_error(self) -> bool:
        return 'error' in self.warnings

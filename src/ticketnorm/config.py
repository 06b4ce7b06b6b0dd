from contextvars import ContextVar
import os
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from ticketnorm.constants import ALLOWED_VALUES_MAX_DISPLAY, MAX_SUGGESTIONS
from ticketnorm.files import get_config_file


class ApplicationConfiguration(BaseSettings):
    """The configuration of the ticketnorm library and CLI tool."""

    log_file: str | None = None
    """The filename of the log file to use. If you set an empty string logging to a file is disabled."""
    log_level: Literal['CRITICAL', 'FATAL', 'ERROR', 'WARN', 'WARNING', 'INFO', 'DEBUG', 'NOTSET'] = 'WARNING'
    """The log level to use, one of Python's `logging` level names."""
    allowed_values_max_display: int = Field(default=ALLOWED_VALUES_MAX_DISPLAY, ge=1)
    """Number of allowed values listed in validation errors before the list is truncated. Default is 10."""
    max_suggestions: int = Field(default=MAX_SUGGESTIONS, ge=0)
    """Maximum number of near matches suggested for an unknown field name or value. Default is 3."""
    default_issue_type: str = 'Task'
    """The issue type used to look up field metadata when none is given."""
    schema_file: str | None = None
    """Path to a JSON or YAML file holding the create-metadata served to the CLI when `--schema` is not given."""

    model_config = SettingsConfigDict(
        extra='allow',
        validate_assignment=True,
        env_prefix='TICKETNORM_',
        env_nested_delimiter='__',
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        if ticketnorm_config_file := os.getenv('TICKETNORM_CONFIG_FILE'):
            conf_file = Path(ticketnorm_config_file).resolve()
        else:
            conf_file = get_config_file()

        if conf_file.exists():
            return (
                init_settings,
                env_settings,
                dotenv_settings,
                YamlConfigSettingsSource(settings_cls, yaml_file=conf_file),
            )
        else:
            return (
                init_settings,
                env_settings,
                dotenv_settings,
            )


CONFIGURATION: ContextVar[ApplicationConfiguration] = ContextVar('configuration')


def get_configuration() -> ApplicationConfiguration:
    """Return the active configuration, loading the default one when none was set."""
    try:
        return CONFIGURATION.get()
    except LookupError:
        configuration = ApplicationConfiguration()
        CONFIGURATION.set(configuration)
        return configuration

import asyncio
import json
import logging
import os
from pathlib import Path
import sys

import click
from pydantic import ValidationError
from pythonjsonlogger.json import JsonFormatter
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ticketnorm.cache import FieldSchemaCache, StaticSchemaProvider
from ticketnorm.config import CONFIGURATION, ApplicationConfiguration
from ticketnorm.constants import LOGGER_NAME
from ticketnorm.exceptions import FieldPipelineException, SchemaLookupException
from ticketnorm.fields.pipeline import process_custom_fields
from ticketnorm.files import get_log_file
from ticketnorm.utils.adf_helpers import text_to_adf
from ticketnorm.utils.adf_to_markdown import convert_adf_to_markdown

console = Console()
error_console = Console(stderr=True)
logger = logging.getLogger(LOGGER_NAME)


def setup_logging(settings: ApplicationConfiguration) -> None:
    logger.setLevel(settings.log_level or logging.WARNING)

    if settings.log_file == '':
        return
    if ticketnorm_log_file := os.getenv('TICKETNORM_LOG_FILE'):
        log_file = Path(ticketnorm_log_file).resolve()
    elif settings.log_file:
        log_file = Path(settings.log_file).resolve()
    else:
        log_file = get_log_file()

    if any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == str(log_file)
        for handler in logger.handlers
    ):
        return

    try:
        fh = logging.FileHandler(log_file)
    except Exception as e:
        logger.warning(f'Failed to create log file handler: {e}')
    else:
        fh.setLevel(settings.log_level or logging.WARNING)
        fh.setFormatter(
            JsonFormatter('%(asctime)s %(levelname)s %(message)s %(lineno)s %(module)s %(pathname)s ')
        )
        logger.addHandler(fh)


def load_configuration() -> ApplicationConfiguration:
    try:
        return ApplicationConfiguration()
    except ValidationError as e:
        error_console.print('Configuration validation error. Make sure your config file is correct.')
        for _e in e.errors():
            if location := _e.get('loc'):
                error_console.print(f'Configuration error at {location[0]}: {_e.get("msg")}')
            else:
                error_console.print(f'Configuration error: {_e.get("msg")}')
        sys.exit(1)


def print_error(message: str) -> None:
    error_console.print(f'[bold red]Error:[/bold red] {escape(message)}')


def print_warnings(warnings: dict[str, list[str]] | list[str]) -> None:
    if isinstance(warnings, dict):
        messages = [f'{category}: {message}' for category, items in warnings.items() for message in items]
    else:
        messages = warnings
    for message in messages:
        error_console.print(f'[yellow]Warning:[/yellow] {escape(message)}')


def load_schema_cache(schema_file: str | None) -> FieldSchemaCache:
    path = schema_file or CONFIGURATION.get().schema_file
    if not path:
        print_error('A schema file is required. Use --schema or set schema_file in the configuration.')
        sys.exit(1)
    try:
        return FieldSchemaCache(StaticSchemaProvider.from_file(path))
    except (OSError, ValueError) as e:
        print_error(f'Unable to load the schema file {path}: {e}')
        sys.exit(1)


@click.group()
@click.version_option(package_name='ticketnorm')
def cli():
    """Normalizes work item descriptions and field values for the Jira API."""
    settings = load_configuration()
    CONFIGURATION.set(settings)
    setup_logging(settings)


@cli.command('md2adf')
@click.argument('source', type=click.File('r'), default='-')
def markdown_to_adf_command(source):
    """Converts Markdown from FILE (or stdin) to an ADF document."""
    document, warnings = text_to_adf(source.read(), track_warnings=True)
    print_warnings(warnings)
    click.echo(json.dumps(document, indent=2))


@cli.command('adf2md')
@click.argument('source', type=click.File('r'), default='-')
def adf_to_markdown_command(source):
    """Converts an ADF document from FILE (or stdin) to Markdown."""
    try:
        document = json.loads(source.read())
    except json.JSONDecodeError as e:
        print_error(f'Invalid JSON document: {e}')
        sys.exit(1)

    conversion = convert_adf_to_markdown(document)
    if conversion.has_error:
        for message in conversion.warnings['error']:
            print_error(message)
        sys.exit(1)

    print_warnings(conversion.warnings)
    click.echo(conversion.result)


@cli.command('fields')
@click.option('--schema', '-s', 'schema_file', default=None, help='A JSON or YAML createmeta document.')
@click.option('--project-key', '-p', required=True, help='The key of the project.')
@click.option('--issue-type', '-t', default=None, help='The name of the issue type.')
@click.argument('fields', nargs=-1)
def fields_command(schema_file: str | None, project_key: str, issue_type: str | None, fields: tuple[str, ...]):
    """Resolves, formats and validates NAME=VALUE field arguments."""
    cache = load_schema_cache(schema_file)
    issue_type = issue_type or CONFIGURATION.get().default_issue_type

    try:
        processed = asyncio.run(process_custom_fields(cache, project_key, issue_type, list(fields)))
    except SchemaLookupException as e:
        print_error(str(e))
        sys.exit(1)
    except FieldPipelineException as e:
        error_console.print(escape(str(e)))
        sys.exit(1)

    for line in processed.progress:
        error_console.print(escape(line))
    click.echo(json.dumps(processed.custom_fields, indent=2))


@cli.command('list-fields')
@click.option('--schema', '-s', 'schema_file', default=None, help='A JSON or YAML createmeta document.')
@click.option('--project-key', '-p', required=True, help='The key of the project.')
@click.option('--issue-type', '-t', default=None, help='The name of the issue type.')
def list_fields_command(schema_file: str | None, project_key: str, issue_type: str | None):
    """Lists the fields available to create work items of a type."""
    cache = load_schema_cache(schema_file)
    issue_type = issue_type or CONFIGURATION.get().default_issue_type

    try:
        fields = asyncio.run(cache.fetch(project_key, issue_type))
    except SchemaLookupException as e:
        print_error(str(e))
        sys.exit(1)

    table = Table(title=f'{project_key} / {issue_type}')
    table.add_column('Id', no_wrap=True)
    table.add_column('Name', no_wrap=True)
    table.add_column('Type', no_wrap=True)
    table.add_column('Required')
    for field in sorted(fields.values(), key=lambda item: item.name.lower()):
        table.add_row(
            escape(field.key),
            escape(field.name),
            escape(field.schema.display),
            'yes' if field.required else 'no',
        )
    console.print(table)


def ticketnormCLI():
    cli()


if __name__ == '__main__':
    ticketnormCLI()

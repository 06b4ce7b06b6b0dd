from typing import Any


class TicketNormException(Exception):
    """General exception, whenever a specific reason can't be determined."""

    extra: dict[str, Any] = {}

    def __init__(self, *args, **kwargs):
        self.extra = kwargs.pop('extra', self.extra)
        super().__init__(*args)


class DocumentStructureException(TicketNormException, ValueError):
    """The input is not a well-formed ADF document tree."""


class SchemaLookupException(TicketNormException):
    pass


class ProjectNotFoundException(SchemaLookupException):
    def __init__(self, project_key: str, **kwargs):
        self.project_key = project_key
        super().__init__(f"Project '{project_key}' not found", **kwargs)


class IssueTypeNotFoundException(SchemaLookupException):
    def __init__(self, issue_type: str, project_key: str, available_types: list[str], **kwargs):
        self.issue_type = issue_type
        self.project_key = project_key
        self.available_types = available_types
        super().__init__(
            f"Issue type '{issue_type}' not found in project {project_key}. "
            f'Available types: {", ".join(available_types)}',
            **kwargs,
        )


class FieldPipelineException(TicketNormException):
    """Raised when one or more fields of a batch can not be processed.

    The rendered message lists every failure of the batch, one per line.
    """

    def __init__(self, message: str, errors: list, **kwargs):
        self.errors = errors
        super().__init__(message, **kwargs)


class FieldResolutionException(FieldPipelineException):
    pass


class FieldFormattingException(FieldPipelineException):
    pass


class FieldValidationException(FieldPipelineException):
    pass

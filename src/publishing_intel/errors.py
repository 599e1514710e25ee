"""Exception types shared by ingestion and the assistant."""


class IngestionError(Exception):
    """Base class for failures scoped to a single source file."""


class UnreadableWorkbookError(IngestionError):
    """The workbook could not be opened or parsed."""


class UnidentifiedUniversityError(IngestionError):
    """The filename does not identify a university."""


class MissingColumnsError(IngestionError):
    """No row in the sheet resolves a journal title column."""


class LLMUnavailableError(Exception):
    """The external LLM is unconfigured, timed out, or kept failing."""

"""Error taxonomy for the collection pipeline."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, List

if TYPE_CHECKING:
    from .pipeline import CollectResult


class InframapError(Exception):
    """Base class for every error raised by inframap."""


class ConfigurationError(InframapError):
    """A collector's config section is present but malformed."""


class SourceError(InframapError):
    """A data source could not be read or decoded."""


@dataclass
class ValidationProblem:
    """A pre-flight problem with a suggested remedy. Never raised by itself."""

    field: str  # dotted path, e.g. "sources.ansible.inventory"
    message: str
    suggestion: str = ""


class ValidationFailed(InframapError):
    """Raised at the end of a validation pass that found problems.

    Attributes:
        problems: Every problem reported by every enabled collector.
    """

    def __init__(self, problems: List[ValidationProblem]) -> None:
        self.problems = problems
        super().__init__(f"{len(problems)} validation error(s)")


class CollectorError(InframapError):
    """Wraps a failure raised by a collector's configure or collect step.

    Attributes:
        collector: Display name of the failing collector.
        cause: The underlying exception.
    """

    def __init__(self, collector: str, cause: BaseException) -> None:
        self.collector = collector
        self.cause = cause
        super().__init__(f"{collector}: {cause}")


class PipelineError(InframapError):
    """Aborts a generation run.

    Attributes:
        error: The CollectorError that stopped the run.
        results: Per-collector outcomes gathered before (and including)
            the failure.
    """

    def __init__(self, error: CollectorError, results: List["CollectResult"]) -> None:
        self.error = error
        self.results = results
        super().__init__(str(error))


class ExportError(InframapError):
    """The external d2 renderer is missing or failed."""

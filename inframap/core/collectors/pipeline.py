"""Collection and validation pipelines.

``collect_infrastructure`` runs the enabled collectors in registry order
against one shared model and stops at the first failure.
``validate_sources`` checks every enabled collector and reports all
problems at once.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..model import Infrastructure
from .errors import CollectorError, ConfigurationError, PipelineError, ValidationFailed, ValidationProblem
from .merger import merge
from .registry import CollectorRegistry, default_registry

logger = logging.getLogger(__name__)


@dataclass
class CollectResult:
    """Outcome of one collector in a generation run."""

    name: str  # display name
    skipped: bool = False
    detail: str = ""
    error: Optional[CollectorError] = None

    @property
    def ok(self) -> bool:
        return not self.skipped and self.error is None

    def status_line(self) -> str:
        if self.skipped:
            return f"  {self.name}: skipped"
        if self.error is not None:
            return f"  {self.name}: failed ({self.error.cause})"
        if self.detail:
            return f"  {self.name}: ok ({self.detail})"
        return f"  {self.name}: ok"


@dataclass
class ValidationReport:
    """Result of a validation pass across every enabled collector."""

    # display name -> problems, in registry order
    checked: Dict[str, List[ValidationProblem]] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)

    @property
    def problems(self) -> List[ValidationProblem]:
        return [p for problems in self.checked.values() for p in problems]

    @property
    def passed(self) -> List[str]:
        return [name for name, problems in self.checked.items() if not problems]

    @property
    def ok(self) -> bool:
        return not self.problems

    def raise_for_problems(self) -> None:
        if self.problems:
            raise ValidationFailed(self.problems)


def collect_infrastructure(
    raw_sources: Optional[Dict[str, Any]],
    registry: Optional[CollectorRegistry] = None,
) -> Tuple[Infrastructure, List[CollectResult]]:
    """Run every enabled collector, then merge.

    Args:
        raw_sources: The ``sources`` mapping from the config file.
        registry: Collector manifest; the built-in one when omitted.

    Returns:
        The merged infrastructure and one result per registered collector.

    Raises:
        PipelineError: On the first collector failure. Carries the results
            recorded so far, the failing one included.
    """
    registry = registry or default_registry()
    sources = raw_sources or {}
    infra = Infrastructure()
    results: List[CollectResult] = []

    for collector in registry.create_all():
        meta = collector.metadata()
        if not collector.enabled(sources):
            results.append(CollectResult(name=meta.display_name, skipped=True))
            logger.debug("Collector %s skipped", meta.name)
            continue

        try:
            collector.configure(sources.get(meta.config_key))
            collector.collect(infra)
        except Exception as e:
            error = CollectorError(meta.display_name, e)
            error.__cause__ = e
            results.append(CollectResult(name=meta.display_name, error=error))
            logger.error("Collector %s failed: %s", meta.name, e)
            raise PipelineError(error, results) from e

        results.append(CollectResult(name=meta.display_name, detail=collector.summary))
        logger.info("Collector %s ok %s", meta.name, collector.summary)

    merge(infra)
    logger.info(
        "Collected %d servers, %d services, %d devices",
        len(infra.servers),
        infra.service_count(),
        len(infra.devices),
    )
    return infra, results


def validate_sources(
    raw_sources: Optional[Dict[str, Any]],
    registry: Optional[CollectorRegistry] = None,
) -> ValidationReport:
    """Validate every enabled collector without collecting anything.

    Configuration failures are reported as problems rather than raised.
    """
    registry = registry or default_registry()
    sources = raw_sources or {}
    report = ValidationReport()

    for collector in registry.create_all():
        meta = collector.metadata()
        if not collector.enabled(sources):
            report.skipped.append(meta.display_name)
            continue

        try:
            collector.configure(sources.get(meta.config_key))
        except ConfigurationError as e:
            report.checked[meta.display_name] = [ValidationProblem(
                field=f"sources.{meta.config_key}",
                message=str(e),
                suggestion="fix the section so it matches the documented keys",
            )]
            continue

        problems = collector.validate()
        for problem in problems:
            logger.warning("%s: %s: %s", meta.display_name, problem.field, problem.message)
        report.checked[meta.display_name] = problems

    logger.info(
        "Validation: %d collectors checked, %d problems",
        len(report.checked),
        len(report.problems),
    )
    return report

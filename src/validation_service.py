from typing import Callable, List, Optional
import logging

from pydantic import BaseModel, ConfigDict, Field

from cdm import ValidationIssue
from edi_detection import detect_delimiters
from edi_parser import parse_edi_to_segments
from edi_validator import validate_segments
from rules_engine import RulesEngine, TPRuleSet
from schema_manager import SchemaManager, get_schema_manager

logger = logging.getLogger(__name__)

# A provider receives the raw document and returns issues tagged with its own source (e.g. 'AI', 'REMOTE').
IssueProvider = Callable[[str], List[ValidationIssue]]

ERROR_PENALTY = 10
WARNING_PENALTY = 2

class ValidationOptions(BaseModel):
    """Explicit per-call configuration; nothing is read from global settings."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    rule_sets: List[TPRuleSet] = Field(default_factory=list)
    issue_providers: List[IssueProvider] = Field(default_factory=list)

class ValidationMetrics(BaseModel):
    segment_count: int = 0
    error_count: int = 0
    warning_count: int = 0

class OrchestratedResult(BaseModel):
    is_valid: bool
    score: int
    issues: List[ValidationIssue] = Field(default_factory=list)
    metrics: ValidationMetrics = Field(default_factory=ValidationMetrics)

class EDIValidationService:
    """Combines local validation, trading partner rules and external issue providers into one scored report."""

    def __init__(self, schema_base_path: Optional[str] = None):
        self.schema_manager = SchemaManager(schema_base_path) if schema_base_path else get_schema_manager()
        self.rules_engine = RulesEngine(self.schema_manager)

    def _provider_issues(self, edi_content: str, provider: IssueProvider) -> List[ValidationIssue]:
        name = getattr(provider, "__name__", repr(provider))
        try:
            issues = [ValidationIssue.model_validate(item) for item in provider(edi_content) or []]
        except Exception as e:
            logger.error(f"Issue provider {name} failed; continuing without it: {e}", exc_info=True)
            return []
        logger.info(f"Issue provider {name} returned {len(issues)} issues")
        return issues

    def validate(self, edi_content: str, options: Optional[ValidationOptions] = None) -> OrchestratedResult:
        """
        Validate EDI content locally, then against active rule sets, then through the issue providers.

        Args:
            edi_content: The EDI document content
            options: Rule sets and issue providers for this call

        Returns:
            OrchestratedResult with issues in that order, a 0-100 score and metrics
        """
        options = options or ValidationOptions()
        try:
            logger.info(f"Starting EDI validation: {len(options.rule_sets)} rule sets, "
                        f"{len(options.issue_providers)} issue providers")

            # Parsed once; the local checks and the partner rules share the segments.
            delimiters = detect_delimiters(edi_content) if edi_content else None
            segments = parse_edi_to_segments(edi_content, delimiters, self.schema_manager) if delimiters else []
            issues: List[ValidationIssue] = validate_segments(segments, delimiters, self.schema_manager)

            for rule_set in options.rule_sets:
                if not rule_set.is_active:
                    logger.debug(f"Skipping inactive rule set '{rule_set.name}'")
                    continue
                issues.extend(self.rules_engine.validate_segments(segments, rule_set.rules))

            for provider in options.issue_providers:
                issues.extend(self._provider_issues(edi_content, provider))

            segment_count = len(segments)
        except Exception as e:
            logger.error(f"EDI validation failed: {e}", exc_info=True)
            issues = [ValidationIssue(code="VALIDATION_ERROR", message=f"Validation failed: {str(e)}", severity='ERROR')]
            segment_count = 0

        error_count = sum(1 for issue in issues if issue.severity == 'ERROR')
        warning_count = sum(1 for issue in issues if issue.severity == 'WARNING')
        score = max(0, 100 - ERROR_PENALTY * error_count - WARNING_PENALTY * warning_count)

        logger.info(f"Validation completed: valid={error_count == 0}, score={score}, issues={len(issues)}")
        return OrchestratedResult(
            is_valid=error_count == 0,
            score=score,
            issues=issues,
            metrics=ValidationMetrics(
                segment_count=segment_count,
                error_count=error_count,
                warning_count=warning_count,
            ),
        )

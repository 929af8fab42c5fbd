import json
import logging
from pathlib import Path
from typing import Dict, List, Literal, Optional, Sequence, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from cdm import ParsedSegment, Severity, ValidationIssue
from edi_parser import parse_edi_to_segments
from schema_manager import SchemaManager

logger = logging.getLogger(__name__)

RuleType = Literal['REQUIRED_SEGMENT', 'PROHIBITED_SEGMENT', 'MAX_LENGTH', 'ALLOWED_CODES', 'CONDITIONAL_EXISTS']

# --- Models for trading partner rules ---
class TPRuleParams(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    length: Optional[int] = None
    codes: Optional[List[str]] = None
    dependent_segment: Optional[str] = Field(None, validation_alias=AliasChoices("dependent_segment", "dependentSegment"))

class TPRule(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    type: RuleType
    target_segment: str = Field(validation_alias=AliasChoices("target_segment", "targetSegment"))
    target_element: Optional[int] = Field(None, validation_alias=AliasChoices("target_element", "targetElement"))
    severity: Severity = 'ERROR'
    message: Optional[str] = None
    params: TPRuleParams = Field(default_factory=TPRuleParams)

class TPRuleSet(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str
    partner: Optional[str] = None
    is_active: bool = Field(True, validation_alias=AliasChoices("is_active", "isActive"))
    rules: List[TPRule] = Field(default_factory=list)

def load_rule_sets(path: Union[str, Path]) -> List[TPRuleSet]:
    """
    Load rule sets from a JSON file holding either a list of rule sets or {"rule_sets": [...]}.
    Rule sets that fail validation are logged and skipped.
    """
    path = Path(path)
    with open(path, 'r') as f:
        data = json.load(f)
    raw_sets = data.get("rule_sets", []) if isinstance(data, dict) else data

    rule_sets = []
    for raw in raw_sets:
        try:
            rule_set = TPRuleSet.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Failed to load rule set from {path.name}: {e}")
            continue
        rule_sets.append(rule_set)
        logger.info(f"Loaded rule set '{rule_set.name}' ({len(rule_set.rules)} rules)")
    return rule_sets

class RulesEngine:
    """Executes configured trading partner rules against a parsed document."""

    def __init__(self, schema_manager: Optional[SchemaManager] = None):
        self.schema_manager = schema_manager

    def validate(self, content: str, rules: Sequence[TPRule]) -> List[ValidationIssue]:
        segments = parse_edi_to_segments(content, schema_manager=self.schema_manager)
        return self.validate_segments(segments, rules)

    def validate_segments(self, segments: Sequence[ParsedSegment], rules: Sequence[TPRule]) -> List[ValidationIssue]:
        segments_by_id: Dict[str, List[ParsedSegment]] = {}
        for segment in segments:
            segments_by_id.setdefault(segment.segment_id, []).append(segment)

        issues: List[ValidationIssue] = []
        for rule in rules:
            rule_issues = self._apply(rule, segments_by_id)
            logger.debug(f"Rule {rule.id} ({rule.type} {rule.target_segment}) -> {len(rule_issues)} issues")
            issues.extend(rule_issues)
        return issues

    def _apply(self, rule: TPRule, segments_by_id: Dict[str, List[ParsedSegment]]) -> List[ValidationIssue]:
        target = rule.target_segment
        matches = segments_by_id.get(target, [])
        element_id = f"{target}{rule.target_element:02d}" if rule.target_element else None

        def issue(code: str, default_message: str, line: Optional[int] = None) -> ValidationIssue:
            return ValidationIssue(
                code=code,
                message=rule.message or default_message,
                severity=rule.severity,
                line=line,
                segment_id=target,
                element_id=element_id if line is not None else None,
                source='TP_RULE',
            )

        if rule.type == 'REQUIRED_SEGMENT':
            return [] if matches else [issue('TP_MISSING_SEG', f"Missing required segment: {target}")]

        if rule.type == 'PROHIBITED_SEGMENT':
            return [
                issue('TP_FORBIDDEN_SEG', f"Segment {target} is prohibited by TP rules.", line=seg.ordinal)
                for seg in matches
            ]

        if rule.type == 'CONDITIONAL_EXISTS':
            dependent = rule.params.dependent_segment
            if matches and dependent and dependent not in segments_by_id:
                return [issue('TP_CONDITIONAL', f"If {target} exists, {dependent} is required.")]
            return []

        if not rule.target_element:
            logger.warning(f"Rule {rule.id} ({rule.type}) has no target element; skipping.")
            return []

        issues = []
        for seg in matches:
            value = seg.get_element(rule.target_element)
            if not value:
                continue
            if rule.type == 'MAX_LENGTH' and rule.params.length is not None and len(value) > rule.params.length:
                issues.append(issue('TP_LEN_ERR', f"{element_id} exceeds max length of {rule.params.length}", line=seg.ordinal))
            elif rule.type == 'ALLOWED_CODES' and rule.params.codes is not None and value not in rule.params.codes:
                allowed = ', '.join(rule.params.codes)
                issues.append(issue('TP_INVALID_CODE', f"Invalid code '{value}' in {element_id}. Allowed: {allowed}", line=seg.ordinal))
        return issues

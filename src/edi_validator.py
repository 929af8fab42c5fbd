import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from edi_schema_models import StructureLoop, StructureNode
from cdm import DelimiterSet, EditorValidationResult, ParsedSegment, ValidationIssue
from edi_detection import detect_delimiters
from edi_parser import parse_edi_to_segments
from schema_manager import SchemaManager, get_schema_manager

logger = logging.getLogger(__name__)

# Envelope segments belong to the interchange, not to any transaction grammar.
ENVELOPE_SEGMENTS = frozenset({'ISA', 'GS', 'GE', 'IEA', 'UNA', 'UNB', 'UNG', 'UNE', 'UNZ'})
# transaction header id -> trailer id
TRANSACTION_PAIRS: Dict[str, str] = {'ST': 'SE', 'UNH': 'UNT'}

# header id -> position of its control reference
HEADER_CONTROL_POSITIONS: Dict[str, int] = {'ISA': 13, 'UNB': 5, 'GS': 6, 'UNG': 5, 'ST': 2, 'UNH': 1}
# trailer id -> (header id, position of the echoed control reference, issue code)
TRAILER_CONTROLS: Dict[str, Tuple[str, int, str]] = {
    'SE': ('ST', 2, 'ST_SE_MISMATCH'),
    'UNT': ('UNH', 2, 'UNH_UNT_MISMATCH'),
    'GE': ('GS', 2, 'GS_GE_MISMATCH'),
    'UNE': ('UNG', 2, 'UNG_UNE_MISMATCH'),
    'IEA': ('ISA', 2, 'ISA_IEA_MISMATCH'),
    'UNZ': ('UNB', 2, 'UNB_UNZ_MISMATCH'),
}
ISA_VALID_LENGTHS = (105, 106)

_SEGMENT_ID = re.compile(r'^[A-Z0-9]{1,3}$')

# --- Structural (grammar) validation ---
def _expected_later(segment_id: str, structure: Sequence[StructureNode], start: int) -> bool:
    return any(node.segment_id == segment_id for node in structure[start:])

def validate_structure(
    segments: Sequence[ParsedSegment],
    structure: Sequence[StructureNode],
    range_start: int,
    range_end: int
) -> Tuple[List[ValidationIssue], int]:
    """
    Matches segments[range_start:range_end] against one level of a transaction grammar.

    A loop node is entered at the same cursor, so its trigger is consumed once by the
    loop body's first child. A mandatory node that already matched at least once counts
    as satisfied.

    Returns:
        (issues, consumed_up_to) where consumed_up_to is the index of the first segment
        this level could not place.
    """
    issues: List[ValidationIssue] = []
    line_idx = range_start
    struct_idx = 0
    matched = set()

    while line_idx < range_end and struct_idx < len(structure):
        segment = segments[line_idx]
        node = structure[struct_idx]
        segment_id = segment.segment_id

        if segment_id in ENVELOPE_SEGMENTS and node.segment_id not in ENVELOPE_SEGMENTS:
            line_idx += 1
            continue

        if segment_id == node.segment_id:
            matched.add(struct_idx)
            if isinstance(node, StructureLoop):
                logger.debug(f"    Entering {node.segment_id} loop at segment {segment.ordinal}")
                loop_issues, loop_end = validate_structure(segments, node.children, line_idx, range_end)
                issues.extend(loop_issues)
                line_idx = loop_end if loop_end > line_idx else line_idx + 1
            else:
                line_idx += 1
            if not node.repeatable:
                struct_idx += 1
            continue

        if node.mandatory and struct_idx not in matched:
            if _expected_later(segment_id, structure, struct_idx + 1):
                logger.debug(f"    [FAIL] Mandatory {node.segment_id} missing before {segment_id} at segment {segment.ordinal}")
                issues.append(ValidationIssue(
                    code='MISSING_SEG',
                    message=f"Missing Mandatory Segment: {node.segment_id} (Expected before {segment_id})",
                    severity='ERROR',
                    line=segment.ordinal,
                    segment_id=node.segment_id,
                ))
                struct_idx += 1
            else:
                # The live segment belongs to an enclosing level.
                return issues, line_idx
        else:
            struct_idx += 1

    return issues, line_idx

def _transaction_code(header: ParsedSegment, component_separator: str) -> Optional[str]:
    if header.segment_id == 'ST':
        return header.get_element(1) or None
    message_id = header.get_element(2)
    if not message_id:
        return None
    return message_id.split(component_separator)[0] if component_separator else message_id

def _find_trailer(segments: Sequence[ParsedSegment], header_idx: int) -> Optional[int]:
    trailer_id = TRANSACTION_PAIRS[segments[header_idx].segment_id]
    for i in range(header_idx + 1, len(segments)):
        segment_id = segments[i].segment_id
        if segment_id == trailer_id:
            return i
        if segment_id in TRANSACTION_PAIRS:
            return None
    return None

def validate_transaction_structure(
    segments: Sequence[ParsedSegment],
    schema_manager: Optional[SchemaManager] = None,
    component_separator: str = ':'
) -> List[ValidationIssue]:
    """
    Validates every ST/SE (or UNH/UNT) body in the document against its grammar.
    """
    schema_manager = schema_manager or get_schema_manager()
    issues: List[ValidationIssue] = []

    header_idx = 0
    while header_idx < len(segments):
        header = segments[header_idx]
        if header.segment_id not in TRANSACTION_PAIRS:
            header_idx += 1
            continue

        code = _transaction_code(header, component_separator)
        trailer_idx = _find_trailer(segments, header_idx)
        if trailer_idx is None:
            trailer_id = TRANSACTION_PAIRS[header.segment_id]
            issues.append(ValidationIssue(
                code='MISSING_TRAILER',
                message=f"Transaction set {code or header.segment_id} has no {trailer_id} trailer.",
                severity='ERROR',
                line=header.ordinal,
                segment_id=header.segment_id,
            ))
            end_idx = next(
                (i for i in range(header_idx + 1, len(segments)) if segments[i].segment_id in TRANSACTION_PAIRS),
                len(segments),
            )
        else:
            end_idx = trailer_idx + 1

        grammar = schema_manager.get_transaction(code) if code else None
        if grammar is None:
            logger.info(f"No grammar for transaction set '{code}'; skipping structural validation.")
            issues.append(ValidationIssue(
                code='UNKNOWN_TRANSACTION',
                message=f"No structure definition for transaction set '{code}'. Structure was not validated.",
                severity='INFO',
                line=header.ordinal,
                segment_id=header.segment_id,
            ))
        else:
            logger.debug(f"--- Validating {code} structure for segments {header.ordinal}-{segments[end_idx - 1].ordinal} ---")
            structure_issues, consumed = validate_structure(segments, grammar.structure, header_idx, end_idx)
            issues.extend(structure_issues)
            for i in range(consumed, end_idx):
                leftover = segments[i]
                if leftover.segment_id in TRANSACTION_PAIRS.values() or leftover.segment_id in ENVELOPE_SEGMENTS:
                    continue
                issues.append(ValidationIssue(
                    code='UNEXPECTED_SEG',
                    message=f"Unexpected Segment '{leftover.segment_id}' in {code} structure.",
                    severity='WARNING',
                    line=leftover.ordinal,
                    segment_id=leftover.segment_id,
                ))

        header_idx = end_idx if end_idx > header_idx else header_idx + 1

    return issues

# --- Envelope and element checks ---
def check_envelopes(segments: Sequence[ParsedSegment]) -> List[ValidationIssue]:
    """Single pass over the whole file: trailer pairing, control numbers, segment counts, ISA length."""
    issues: List[ValidationIssue] = []
    open_controls: Dict[str, Optional[str]] = {}
    segments_in_transaction = 0

    for segment in segments:
        segment_id = segment.segment_id

        if segment_id == 'ISA':
            length = len(segment.raw_text.strip())
            if length not in ISA_VALID_LENGTHS:
                issues.append(ValidationIssue(
                    code='ISA_LEN',
                    message=f"ISA segment length mismatch. Expected 105 characters, found {length}.",
                    severity='ERROR',
                    line=segment.ordinal,
                    segment_id='ISA',
                ))

        if segment_id in HEADER_CONTROL_POSITIONS:
            open_controls[segment_id] = segment.get_element(HEADER_CONTROL_POSITIONS[segment_id])
            if segment_id in TRANSACTION_PAIRS:
                segments_in_transaction = 0

        if segment_id in TRAILER_CONTROLS:
            header_id, position, code = TRAILER_CONTROLS[segment_id]
            is_transaction_trailer = segment_id in TRANSACTION_PAIRS.values()

            if header_id not in open_controls:
                if is_transaction_trailer:
                    issues.append(ValidationIssue(
                        code='ORPHAN_TRAILER',
                        message=f"{segment_id} trailer without a preceding {header_id} header.",
                        severity='ERROR',
                        line=segment.ordinal,
                        segment_id=segment_id,
                    ))
            else:
                header_control = open_controls.pop(header_id)
                trailer_control = segment.get_element(position)
                if header_control and trailer_control != header_control:
                    issues.append(ValidationIssue(
                        code=code,
                        message=f"Control number mismatch. {header_id}: {header_control}, {segment_id}: {trailer_control}.",
                        severity='ERROR',
                        line=segment.ordinal,
                        segment_id=segment_id,
                        element_id=f"{segment_id}{position:02d}",
                    ))

                declared = segment.get_element(1)
                if is_transaction_trailer and declared:
                    expected = segments_in_transaction + 1
                    try:
                        count_matches = int(declared) == expected
                    except ValueError:
                        count_matches = False
                    if not count_matches:
                        issues.append(ValidationIssue(
                            code='SEG_COUNT',
                            message=f"Segment count mismatch. Expected {expected}, found {declared}.",
                            severity='WARNING',
                            line=segment.ordinal,
                            segment_id=segment_id,
                            element_id=f"{segment_id}01",
                        ))

        if any(header in open_controls for header in TRANSACTION_PAIRS):
            segments_in_transaction += 1

    return issues

def check_elements(segments: Sequence[ParsedSegment]) -> List[ValidationIssue]:
    """Turns each token's own finding into an issue and flags segment ids missing from the dictionary."""
    issues: List[ValidationIssue] = []
    for segment in segments:
        if segment.definition is None and _SEGMENT_ID.match(segment.segment_id):
            issues.append(ValidationIssue(
                code='UNKNOWN_SEG',
                message=f"Unknown segment ID: '{segment.segment_id}'",
                severity='WARNING',
                line=segment.ordinal,
                segment_id=segment.segment_id,
            ))
        for token in segment.elements:
            if token.error is None:
                continue
            issues.append(ValidationIssue(
                code='VAL_ERR' if token.error.severity == 'ERROR' else 'VAL_WARN',
                message=f"{token.full_id}: {token.error.message}",
                severity=token.error.severity,
                line=segment.ordinal,
                segment_id=segment.segment_id,
                element_id=token.full_id,
            ))
    return issues

def validate_segments(
    segments: Sequence[ParsedSegment],
    delimiters: Optional[DelimiterSet],
    schema_manager: SchemaManager
) -> List[ValidationIssue]:
    """Runs the envelope, element and structure checks over an already parsed document."""
    per_segment = check_envelopes(segments) + check_elements(segments)
    # Stable sort keeps envelope issues ahead of element issues on the same line.
    issues = sorted(per_segment, key=lambda issue: issue.line or 0)
    if segments and delimiters is not None and delimiters.standard != 'UNKNOWN':
        issues.extend(validate_transaction_structure(segments, schema_manager, delimiters.component_separator))
    return issues

def validate_document(content: str, schema_manager: Optional[SchemaManager] = None) -> EditorValidationResult:
    """
    Full local validation of one document.

    Envelope and element issues come first in segment order, followed by structural
    issues per transaction. Never raises: an internal failure becomes a single
    VALIDATION_ERROR issue.
    """
    try:
        schema_manager = schema_manager or get_schema_manager()
        delimiters = detect_delimiters(content) if content else None
        segments = parse_edi_to_segments(content, delimiters, schema_manager) if delimiters else []
        issues = validate_segments(segments, delimiters, schema_manager)
    except Exception as e:
        logger.error(f"Error during validation: {e}", exc_info=True)
        issues = [ValidationIssue(code='VALIDATION_ERROR', message=f"Validation failed: {e}", severity='ERROR')]

    result = EditorValidationResult(
        is_valid=not any(issue.severity == 'ERROR' for issue in issues),
        issues=issues,
    )
    if result.is_valid:
        logger.info(f"Validation complete: document is valid ({len(result.warnings)} warnings).")
    else:
        logger.warning(f"Validation complete: {len(result.errors)} errors, {len(result.warnings)} warnings.")
    return result

import logging
from typing import Dict, FrozenSet, List, Optional

from cdm import AlignedSegment, CompareOptions, EdiSegment, StructuralDiffResult
from edi_detection import detect_delimiters
from edi_parser import split_unescaped, trim_segment

logger = logging.getLogger(__name__)

# segment id -> element positions holding interchange/group/transaction control numbers
CONTROL_NUMBER_ELEMENTS: Dict[str, FrozenSet[int]] = {
    'ISA': frozenset({13}), 'IEA': frozenset({2}),
    'GS': frozenset({6}), 'GE': frozenset({2}),
    'ST': frozenset({2}), 'SE': frozenset({2}),
    'UNB': frozenset({5}), 'UNZ': frozenset({2}),
    'UNG': frozenset({5}), 'UNE': frozenset({2}),
    'UNH': frozenset({1}), 'UNT': frozenset({2}),
}
# segment id -> element positions holding preparation dates and times
TIMESTAMP_ELEMENTS: Dict[str, FrozenSet[int]] = {
    'ISA': frozenset({9, 10}),
    'GS': frozenset({4, 5}),
    'UNB': frozenset({4}),
    'UNG': frozenset({4}),
}

MAX_SCORE = 100
PENALTY_PER_CHANGE = 2

def parse_segments(content: str) -> List[EdiSegment]:
    """Flat segment list (id + elements) used for alignment; no schema lookups."""
    if not content:
        return []
    delimiters = detect_delimiters(content)
    terminator = delimiters.segment_terminator
    separator = delimiters.element_separator
    release = delimiters.release_character

    if delimiters.is_line_terminated:
        clean_content = content.replace('\r', '')
    else:
        clean_content = content.replace('\r', '').replace('\n', '')

    chunks = [trim_segment(chunk) for chunk in split_unescaped(clean_content, terminator, release)]
    segments = []
    for raw in (chunk for chunk in chunks if chunk):
        if delimiters.standard == 'EDIFACT' and raw.startswith('UNA'):
            parts = ['UNA', raw[3:]]
        else:
            parts = split_unescaped(raw, separator, release)
        segments.append(EdiSegment(id=parts[0], elements=parts[1:], raw=raw, line=len(segments) + 1))
    return segments

def score_for(total_changes: int) -> int:
    return max(0, MAX_SCORE - PENALTY_PER_CHANGE * total_changes)

def _ignored_positions(segment_id: str, options: CompareOptions) -> FrozenSet[int]:
    ignored = frozenset()
    if options.ignore_control_numbers:
        ignored |= CONTROL_NUMBER_ELEMENTS.get(segment_id, frozenset())
    if options.ignore_timestamps:
        ignored |= TIMESTAMP_ELEMENTS.get(segment_id, frozenset())
    return ignored

def _element_diffs(left: EdiSegment, right: EdiSegment, options: CompareOptions) -> List[int]:
    ignored = _ignored_positions(left.id, options)
    diffs = []
    for k in range(max(len(left.elements), len(right.elements))):
        position = k + 1
        if position in ignored:
            continue
        value_a = left.elements[k] if k < len(left.elements) else ''
        value_b = right.elements[k] if k < len(right.elements) else ''
        if options.ignore_whitespace:
            value_a, value_b = value_a.strip(), value_b.strip()
        if value_a != value_b:
            diffs.append(position)
    return diffs

def compute_structural_diff(
    text_a: str,
    text_b: str,
    options: Optional[CompareOptions] = None
) -> StructuralDiffResult:
    """
    Aligns two documents by segment id (LCS over ids only) and flags element value changes.

    Every LEFT_ONLY, RIGHT_ONLY and MODIFIED entry counts as one change; the score loses
    two points per change and never drops below zero.
    """
    options = options or CompareOptions()
    segs_a = parse_segments(text_a)
    segs_b = parse_segments(text_b)
    m, n = len(segs_a), len(segs_b)

    dp = [[0] * (n + 1) for _ in range(m + 1)]
    for i in range(1, m + 1):
        for j in range(1, n + 1):
            if segs_a[i - 1].id == segs_b[j - 1].id:
                dp[i][j] = dp[i - 1][j - 1] + 1
            else:
                dp[i][j] = max(dp[i][j - 1], dp[i - 1][j])

    aligned: List[AlignedSegment] = []
    total_changes = 0
    i, j = m, n
    while i > 0 or j > 0:
        if i > 0 and j > 0 and segs_a[i - 1].id == segs_b[j - 1].id:
            left, right = segs_a[i - 1], segs_b[j - 1]
            diffs = _element_diffs(left, right, options)
            if diffs:
                aligned.append(AlignedSegment(status='MODIFIED', left=left, right=right, diffs=diffs))
                total_changes += 1
            else:
                aligned.append(AlignedSegment(status='MATCH', left=left, right=right))
            i -= 1
            j -= 1
        elif j > 0 and (i == 0 or dp[i][j - 1] >= dp[i - 1][j]):
            aligned.append(AlignedSegment(status='RIGHT_ONLY', right=segs_b[j - 1]))
            total_changes += 1
            j -= 1
        else:
            aligned.append(AlignedSegment(status='LEFT_ONLY', left=segs_a[i - 1]))
            total_changes += 1
            i -= 1
    aligned.reverse()

    if total_changes:
        summary = f"Found {total_changes} differences in structure or values."
    else:
        summary = "Structure matches perfectly."
    logger.info(f"Structural diff: {m} vs {n} segments, {total_changes} changes.")

    return StructuralDiffResult(
        aligned_segments=aligned,
        summary=summary,
        score=score_for(total_changes),
        total_changes=total_changes,
    )

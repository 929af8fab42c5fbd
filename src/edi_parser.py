import logging
import re
from typing import Dict, List, NamedTuple, Optional, Tuple

from edi_schema_models import SegmentDefinition
from cdm import DelimiterSet, DocumentInfo, ParsedSegment, Token
from edi_detection import UNA_LENGTH, detect_delimiters
from element_rules import check_element_value
from schema_manager import SchemaManager, get_schema_manager

logger = logging.getLogger(__name__)

# Envelope segments sit at fixed depths and never open a loop.
ENVELOPE_DEPTHS: Dict[str, int] = {
    'ISA': 0, 'UNB': 0, 'UNA': 0,
    'GS': 1, 'UNG': 1,
    'ST': 2, 'UNH': 2,
    'SE': 2, 'UNT': 2,
    'GE': 1, 'UNE': 1,
    'IEA': 0, 'UNZ': 0,
}
TRANSACTION_TRAILERS = ('SE', 'UNT')
LOOP_TRIGGERS = frozenset({'N1', 'NM1', 'ENT', 'NAD', 'PO1', 'IT1', 'LIN', 'HL', 'LX', 'CLM'})

LOOP_DEPTH = 3
IN_LOOP_DEPTH = 4

_LINE_BREAK = re.compile(r'\r?\n')

# --- Loop tracking ---
class LoopFrame(NamedTuple):
    loop_id: str
    start_ordinal: int

class LoopTracker:
    """
    Derives loop nesting from segment ids alone, in one left-to-right pass.

    Closed loops are recorded in `loop_ends` (start ordinal -> end ordinal) so the
    caller can build immutable segments once every closing is known.
    """

    def __init__(self):
        self._stack: List[LoopFrame] = []
        self.loop_ends: Dict[int, int] = {}

    @property
    def open_loops(self) -> Tuple[LoopFrame, ...]:
        return tuple(self._stack)

    def _close_top(self, end_ordinal: int):
        frame = self._stack.pop()
        self.loop_ends[frame.start_ordinal] = end_ordinal
        logger.debug(f"Closed {frame.loop_id} loop opened at {frame.start_ordinal}, ending at {end_ordinal}")

    def _close_open_hl(self, end_ordinal: int):
        # Hierarchical levels never nest under themselves; anything opened inside the prior HL goes with it.
        if not any(frame.loop_id == 'HL' for frame in self._stack):
            return
        while self._stack:
            loop_id = self._stack[-1].loop_id
            self._close_top(end_ordinal)
            if loop_id == 'HL':
                break

    def depth_for(self, segment_id: str, ordinal: int) -> Tuple[int, bool]:
        """
        Returns (depth, is_loop_start) for the segment at `ordinal` and updates the stack.
        """
        if segment_id in TRANSACTION_TRAILERS:
            while self._stack:
                self._close_top(ordinal - 1)
            return ENVELOPE_DEPTHS[segment_id], False

        if segment_id in ENVELOPE_DEPTHS:
            return ENVELOPE_DEPTHS[segment_id], False

        if segment_id in LOOP_TRIGGERS:
            if self._stack and self._stack[-1].loop_id == segment_id:
                self._close_top(ordinal - 1)
            if segment_id == 'HL':
                self._close_open_hl(ordinal - 1)
            self._stack.append(LoopFrame(segment_id, ordinal))
            return LOOP_DEPTH, True

        return (IN_LOOP_DEPTH if self._stack else LOOP_DEPTH), False

    def close_all(self, last_ordinal: int):
        while self._stack:
            self._close_top(last_ordinal)

# --- Splitting helpers ---
def split_unescaped(text: str, separator: str, release: Optional[str]) -> List[str]:
    """Split on `separator`, except where it is preceded by the release character. Values stay escaped."""
    if not separator:
        return [text]
    if not release or release not in text:
        return text.split(separator)

    parts: List[str] = []
    current: List[str] = []
    i = 0
    while i < len(text):
        char = text[i]
        if char == release and i + 1 < len(text):
            current.append(text[i:i + 2])
            i += 2
            continue
        if text.startswith(separator, i):
            parts.append(''.join(current))
            current = []
            i += len(separator)
            continue
        current.append(char)
        i += 1
    parts.append(''.join(current))
    return parts

def trim_segment(chunk: str) -> str:
    """Strips surrounding whitespace, except the reserved last character of a UNA advice (usually a blank)."""
    segment = chunk.lstrip()
    return segment if segment.startswith('UNA') else segment.strip()

def _split_raw_segments(content: str, delimiters: DelimiterSet) -> List[str]:
    if '\n' in content:
        # Preservation mode: a line missing its terminator must not swallow the next one.
        return [line for line in _LINE_BREAK.split(content) if line.strip()]

    terminator = delimiters.segment_terminator
    if delimiters.is_line_terminated:
        return [content] if content.strip() else []

    stream = content.replace('\r', '')
    chunks = (trim_segment(chunk) for chunk in split_unescaped(stream, terminator, delimiters.release_character))
    return [chunk + terminator for chunk in chunks if chunk]

def _strip_terminator(raw: str, delimiters: DelimiterSet) -> Tuple[str, bool]:
    clean = raw.strip()
    if delimiters.is_line_terminated:
        return clean, False
    terminator = delimiters.segment_terminator

    if clean.startswith('UNA') and len(clean) >= UNA_LENGTH and clean[UNA_LENGTH - 1] == terminator:
        return clean[:UNA_LENGTH - 1], True

    if not clean.endswith(terminator):
        return clean, False
    body = clean[:-len(terminator)]
    release = delimiters.release_character
    # An odd run of release characters escapes the terminator; an even run is escaped releases.
    run = len(body) - len(body.rstrip(release)) if release else 0
    if run % 2:
        return clean, False
    return body.strip(), True

# --- Tokenizer ---
def _tokenize(
    raw: str,
    delimiters: DelimiterSet,
    schema_manager: SchemaManager
) -> Tuple[str, List[Token], Optional[SegmentDefinition]]:
    clean, has_terminator = _strip_terminator(raw, delimiters)
    separator = delimiters.element_separator

    if delimiters.standard == 'EDIFACT' and clean.startswith('UNA'):
        # The service string advice declares the delimiters, so it cannot be split by them.
        parts = ['UNA', clean[3:]] if len(clean) > 3 else ['UNA']
        emit_delimiters = False
    else:
        parts = split_unescaped(clean, separator, delimiters.release_character)
        emit_delimiters = True

    segment_id = parts[0]
    definition = schema_manager.get_segment(segment_id, delimiters.standard)

    tokens: List[Token] = [Token(kind='SEGMENT_ID', value=segment_id, position=0, full_id=segment_id)]
    for position, value in enumerate(parts[1:], start=1):
        if emit_delimiters:
            tokens.append(Token(kind='DELIMITER', value=separator, position=-1))
        element_def = definition.get_element(position) if definition else None
        tokens.append(Token(
            kind='ELEMENT',
            value=value,
            position=position,
            full_id=f"{segment_id}{position:02d}",
            schema_ref=element_def,
            error=check_element_value(value, element_def) if element_def else None,
        ))

    if has_terminator:
        tokens.append(Token(kind='TERMINATOR', value=delimiters.segment_terminator, position=-1))

    return segment_id, tokens, definition

def _parse_opaque_lines(content: str) -> List[ParsedSegment]:
    logger.debug("Unknown standard; returning content as opaque text lines.")
    return [
        ParsedSegment(
            ordinal=ordinal,
            raw_text=line,
            segment_id='',
            loop_depth=0,
            tokens=[Token(kind='ELEMENT', value=line, position=0)],
        )
        for ordinal, line in enumerate(_LINE_BREAK.split(content), start=1)
    ]

def parse_edi_to_segments(
    content: str,
    delimiters: Optional[DelimiterSet] = None,
    schema_manager: Optional[SchemaManager] = None
) -> List[ParsedSegment]:
    """
    Tokenizes raw EDI text into one ParsedSegment per segment.

    Content with embedded line breaks is split per line; a single stream is split on
    the detected terminator. Unknown content degrades to one opaque line per segment.

    Args:
        content: Raw document text
        delimiters: Pre-detected delimiters; detected from `content` when omitted
        schema_manager: Registry used to resolve segment and element definitions

    Returns:
        Segments in document order with 1-based ordinals
    """
    if not content:
        return []

    delimiters = delimiters or detect_delimiters(content)
    if delimiters.standard == 'UNKNOWN':
        return _parse_opaque_lines(content)

    schema_manager = schema_manager or get_schema_manager()
    raw_segments = _split_raw_segments(content, delimiters)
    mode = "line" if "\n" in content else "stream"
    logger.debug(f"Split content into {len(raw_segments)} raw segments ({mode} mode, standard {delimiters.standard}).")

    tracker = LoopTracker()
    pending = []
    for ordinal, raw in enumerate(raw_segments, start=1):
        segment_id, tokens, definition = _tokenize(raw, delimiters, schema_manager)
        depth, is_loop_start = tracker.depth_for(segment_id, ordinal)
        pending.append((ordinal, raw, segment_id, depth, is_loop_start, tokens, definition))
    tracker.close_all(len(raw_segments))

    return [
        ParsedSegment(
            ordinal=ordinal,
            raw_text=raw,
            segment_id=segment_id,
            loop_depth=depth,
            is_loop_start=is_loop_start,
            loop_end_ordinal=tracker.loop_ends.get(ordinal) if is_loop_start else None,
            tokens=tokens,
            definition=definition,
        )
        for ordinal, raw, segment_id, depth, is_loop_start, tokens, definition in pending
    ]

def _first_component(value: Optional[str], component_separator: str) -> Optional[str]:
    if not value:
        return None
    return value.split(component_separator)[0] if component_separator else value

def get_document_info(content: str, schema_manager: Optional[SchemaManager] = None) -> DocumentInfo:
    """Extracts envelope-level facts (parties, transaction set, version) from a document."""
    delimiters = detect_delimiters(content) if content else None
    if delimiters is None or delimiters.standard == 'UNKNOWN':
        return DocumentInfo(standard='UNKNOWN', segment_count=len(parse_edi_to_segments(content)))

    segments = parse_edi_to_segments(content, delimiters, schema_manager)
    by_id: Dict[str, ParsedSegment] = {}
    for segment in segments:
        by_id.setdefault(segment.segment_id, segment)

    def element(segment_id: str, position: int) -> Optional[str]:
        segment = by_id.get(segment_id)
        value = segment.get_element(position) if segment else None
        return value.strip() if value else None

    component = delimiters.component_separator
    if delimiters.standard == 'X12':
        info = DocumentInfo(
            standard='X12',
            transaction_set=element('ST', 1),
            version=element('GS', 8) or element('ST', 3),
            sender=element('ISA', 6),
            receiver=element('ISA', 8),
            control_number=element('ISA', 13),
            segment_count=len(segments),
        )
    else:
        message_id = element('UNH', 2)
        message_parts = message_id.split(component) if message_id and component else []
        info = DocumentInfo(
            standard='EDIFACT',
            transaction_set=message_parts[0] if message_parts else None,
            version=''.join(message_parts[1:3]) or None,
            sender=_first_component(element('UNB', 2), component),
            receiver=_first_component(element('UNB', 3), component),
            control_number=element('UNB', 5),
            segment_count=len(segments),
        )
    logger.debug(f"Document info: {info}")
    return info

"""
Warping (single stream) and unwarping (one segment per line) of EDI text.

Both use the detected terminator. When the terminator is itself a line break the line
structure cannot be removed, so both operations only drop blank lines.
"""
import logging
import re

from edi_detection import detect_delimiters
from edi_parser import split_unescaped, trim_segment

logger = logging.getLogger(__name__)

_LINE_BREAKS = re.compile(r'[\r\n]+')

def _tidy_lines(text: str) -> str:
    return '\n'.join(line.strip() for line in re.split(r'\r?\n', text) if line.strip())

def warp_edi(text: str) -> str:
    if not text:
        return ""
    delimiters = detect_delimiters(text)
    if delimiters.is_line_terminated:
        logger.debug("Terminator is a line break; warp only removes blank lines.")
        return _tidy_lines(text)
    return _LINE_BREAKS.sub('', text)

def unwarp_edi(text: str) -> str:
    if not text:
        return ""
    delimiters = detect_delimiters(text)
    if delimiters.is_line_terminated:
        return _tidy_lines(text)

    terminator = delimiters.segment_terminator
    stream = _LINE_BREAKS.sub('', text)
    chunks = split_unescaped(stream, terminator, delimiters.release_character)
    segments = [trim_segment(chunk) for chunk in chunks]
    return '\n'.join(segment + terminator for segment in segments if segment)

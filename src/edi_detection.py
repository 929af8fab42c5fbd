"""
EDI standard and delimiter detection.

X12 interchanges carry their delimiters at fixed offsets of the ISA segment;
EDIFACT ones may announce them in a UNA service string advice. Snippets without
either fall back to the most common characters.
"""
import logging
import re

from cdm import DelimiterSet

logger = logging.getLogger(__name__)

ISA_LENGTH = 106
UNA_LENGTH = 9

_X12_SNIPPET = re.compile(r'^[A-Z0-9]{2,3}\*')

EDIFACT_DEFAULTS = DelimiterSet(
    segment_terminator="'",
    element_separator='+',
    component_separator=':',
    release_character='?',
    standard='EDIFACT',
)

def detect_edi_standard(content: str) -> str:
    trimmed = content.lstrip()
    if trimmed.startswith(('ISA', 'GS', 'ST')):
        return 'X12'
    if _X12_SNIPPET.match(trimmed):
        return 'X12'
    if trimmed.startswith(('UNA', 'UNB', 'UNH')):
        return 'EDIFACT'
    return 'UNKNOWN'

def detect_delimiters(content: str) -> DelimiterSet:
    standard = detect_edi_standard(content)
    trimmed = content.lstrip()

    if standard == 'X12':
        # Positions are fixed in the X12 standard
        if trimmed.startswith('ISA') and len(trimmed) >= ISA_LENGTH:
            delimiters = DelimiterSet(
                segment_terminator=trimmed[105],
                element_separator=trimmed[3],
                component_separator=trimmed[104],
                standard='X12',
            )
            logger.debug(f"X12 delimiters read from ISA: Element='{delimiters.element_separator}', "
                         f"Segment='{delimiters.segment_terminator}', Component='{delimiters.component_separator}'")
            return delimiters

        element = '*'
        if trimmed.startswith('ISA') and len(trimmed) > 3:
            element = trimmed[3]
        elif '*' not in trimmed and '+' in trimmed:
            element = '+'
        if '~' in trimmed:
            segment = '~'
        elif '\n' in trimmed:
            segment = '\n'
        else:
            segment = '~'
        logger.debug(f"No full ISA segment; using X12 heuristics: Element='{element}', Segment={segment!r}")
        return DelimiterSet(
            segment_terminator=segment,
            element_separator=element,
            component_separator='>',
            standard='X12',
        )

    if standard == 'EDIFACT':
        if trimmed.startswith('UNA') and len(trimmed) >= UNA_LENGTH:
            delimiters = DelimiterSet(
                component_separator=trimmed[3],
                element_separator=trimmed[4],
                release_character=trimmed[6],
                segment_terminator=trimmed[8],
                standard='EDIFACT',
            )
            logger.debug(f"EDIFACT delimiters read from UNA: {delimiters}")
            return delimiters
        logger.debug("No UNA service string advice; using EDIFACT level A defaults.")
        return EDIFACT_DEFAULTS

    logger.debug("Content is not recognisable EDI; treating it as plain text lines.")
    return DelimiterSet(
        segment_terminator='\n',
        element_separator='',
        component_separator='',
        standard='UNKNOWN',
    )

import logging
import re
from typing import Optional

from edi_schema_models import ElementDefinition
from cdm import ElementFinding

logger = logging.getLogger(__name__)

_DATE = re.compile(r'^\d{6,8}$')
_TIME = re.compile(r'^\d{4,8}$')
_INTEGER = re.compile(r'^-?\d+$')
_DECIMAL = re.compile(r'^-?(\d+(\.\d*)?|\.\d+)$')

def _check_data_type(value: str, definition: ElementDefinition) -> Optional[ElementFinding]:
    data_type = definition.data_type
    if data_type == 'DT' and not _DATE.match(value):
        return ElementFinding(message="Invalid Date (Expect YYMMDD or CCYYMMDD)", severity='ERROR')
    if data_type == 'TM' and not _TIME.match(value):
        return ElementFinding(message="Invalid Time (Expect HHMM, HHMMSS...)", severity='ERROR')
    if data_type == 'N0' and not _INTEGER.match(value):
        return ElementFinding(message="Expected Integer (N0)", severity='ERROR')
    if data_type in ('R', 'N2') and not _DECIMAL.match(value):
        return ElementFinding(message="Expected Numeric (Decimal allowed)", severity='ERROR')
    if data_type == 'ID' and definition.qualifiers and value not in definition.qualifiers:
        allowed = ', '.join(definition.qualifiers.keys())
        return ElementFinding(message=f"Invalid Qualifier '{value}'. Expected one of: {allowed}", severity='ERROR')
    return None

def check_element_value(value: str, definition: ElementDefinition) -> Optional[ElementFinding]:
    """
    Validates a single element value against its dictionary definition.

    An empty value always passes; presence is a structural concern, not an element one.
    Being shorter than min_length is a WARNING, everything else that fails is an ERROR.

    Returns:
        The first finding, or None when the value is acceptable.
    """
    if not value:
        return None

    log_line_intro = f"        Validating {definition.id} ({definition.data_type} {definition.min_length}/{definition.max_length}): Data='{value}'"

    if len(value) < definition.min_length:
        finding = ElementFinding(message=f"Value '{value}' is too short (Min: {definition.min_length})", severity='WARNING')
    elif len(value) > definition.max_length:
        finding = ElementFinding(message=f"Value '{value}' is too long (Max: {definition.max_length})", severity='ERROR')
    else:
        finding = _check_data_type(value, definition)

    if finding:
        logger.debug(f"{log_line_intro} -> [FAIL] {finding.message}")
    else:
        logger.debug(f"{log_line_intro} -> [PASS]")
    return finding

import pytest
from cdm import DelimiterSet
from edi_parser import parse_edi_to_segments
from edi_validator import check_envelopes, validate_document

pytestmark = pytest.mark.unit

X12_DELIMITERS = DelimiterSet(segment_terminator='~', element_separator='*', component_separator='>', standard='X12')

def test_segment_count_mismatch_is_a_warning(valid_850_edi: str, schema_manager):
    result = validate_document(valid_850_edi.replace("SE*13*0001~", "SE*99*0001~"), schema_manager)

    assert result.is_valid
    assert len(result.issues) == 1
    issue = result.issues[0]
    assert issue.code == 'SEG_COUNT'
    assert issue.severity == 'WARNING'
    assert issue.element_id == 'SE01'
    assert issue.line == 15
    assert issue.message == "Segment count mismatch. Expected 13, found 99."

def test_non_numeric_segment_count(valid_850_edi: str, schema_manager):
    result = validate_document(valid_850_edi.replace("SE*13*0001~", "SE*ABC*0001~"), schema_manager)
    codes = [i.code for i in result.issues]

    assert 'SEG_COUNT' in codes
    assert 'VAL_ERR' in codes  # SE01 is N0

@pytest.mark.parametrize("original, replacement, code, element_id", [
    ("SE*13*0001~", "SE*13*0002~", "ST_SE_MISMATCH", "SE02"),
    ("GE*1*1~", "GE*1*7~", "GS_GE_MISMATCH", "GE02"),
    ("IEA*1*000000001~", "IEA*1*000000002~", "ISA_IEA_MISMATCH", "IEA02"),
])
def test_control_number_mismatch(valid_850_edi: str, schema_manager, original, replacement, code, element_id):
    result = validate_document(valid_850_edi.replace(original, replacement), schema_manager)

    assert not result.is_valid
    assert [(i.code, i.element_id) for i in result.issues] == [(code, element_id)]
    assert result.issues[0].severity == 'ERROR'

def test_edifact_control_reference_mismatch(valid_orders_edifact: str, schema_manager):
    result = validate_document(valid_orders_edifact.replace("UNZ+1+REF001'", "UNZ+1+REF002'"), schema_manager)

    assert [i.code for i in result.issues] == ['UNB_UNZ_MISMATCH']
    assert result.issues[0].message == "Control number mismatch. UNB: REF001, UNZ: REF002."

def test_edifact_message_segment_count(valid_orders_edifact: str, schema_manager):
    result = validate_document(valid_orders_edifact.replace("UNT+11+1'", "UNT+12+1'"), schema_manager)

    assert [(i.code, i.segment_id) for i in result.issues] == [('SEG_COUNT', 'UNT')]

def test_orphan_trailer(schema_manager):
    segments = parse_edi_to_segments("ST*850*0001~SE*2*0001~SE*2*0001~", schema_manager=schema_manager)
    issues = check_envelopes(segments)

    assert [(i.code, i.line) for i in issues] == [('ORPHAN_TRAILER', 3)]
    assert issues[0].message == "SE trailer without a preceding ST header."

def test_isa_length(isa_line: str, schema_manager):
    # The delimiters are passed in because a wrong-length ISA moves the fixed offsets.
    long_isa = isa_line.replace("SENDERID       ", "SENDERID         ")
    segments = parse_edi_to_segments(long_isa + "\nIEA*1*000000001~", X12_DELIMITERS, schema_manager)
    issues = check_envelopes(segments)

    assert [i.code for i in issues] == ['ISA_LEN']
    assert issues[0].message == "ISA segment length mismatch. Expected 105 characters, found 108."

def test_isa_without_terminator_is_accepted(isa_line: str, schema_manager):
    segments = parse_edi_to_segments(isa_line[:-1] + "\nIEA*1*000000001~", X12_DELIMITERS, schema_manager)

    assert check_envelopes(segments) == []

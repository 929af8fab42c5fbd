import pytest
from cdm import CompareOptions
from structural_diff import compute_structural_diff, parse_segments, score_for

pytestmark = pytest.mark.unit

def test_identical_documents_match_perfectly(valid_850_edi: str):
    result = compute_structural_diff(valid_850_edi, valid_850_edi)

    assert result.total_changes == 0
    assert result.score == 100
    assert result.summary == "Structure matches perfectly."
    assert all(a.status == 'MATCH' for a in result.aligned_segments)
    assert len(result.aligned_segments) == 17

def test_changed_element_is_modified(valid_850_edi: str):
    changed = valid_850_edi.replace("PO1*2*5*CS*40.00**VP*WIDGET-B~", "PO1*2*5*CS*42.00**VP*WIDGET-B~")

    result = compute_structural_diff(valid_850_edi, changed)

    modified = [a for a in result.aligned_segments if a.status != 'MATCH']
    assert len(modified) == 1
    assert modified[0].status == 'MODIFIED'
    assert modified[0].left.id == 'PO1'
    assert modified[0].diffs == [4]
    assert result.score == 98
    assert result.summary == "Found 1 differences in structure or values."

def test_added_and_removed_segments(valid_850_edi: str):
    changed = valid_850_edi.replace("REF*DP*038~\n", "").replace("CTT*2~", "CTT*2~\nAMT*TT*325~")

    result = compute_structural_diff(valid_850_edi, changed)
    statuses = [(a.status, (a.left or a.right).id) for a in result.aligned_segments if a.status != 'MATCH']

    assert statuses == [('LEFT_ONLY', 'REF'), ('RIGHT_ONLY', 'AMT')]
    assert result.total_changes == 2
    assert result.score == 96

def test_score_is_clamped_and_monotone():
    assert score_for(0) == 100
    assert score_for(10) == 80
    assert score_for(50) == 0
    assert score_for(75) == 0
    scores = [score_for(n) for n in range(60)]
    assert scores == sorted(scores, reverse=True)

def test_score_never_negative():
    left = "\n".join(f"REF*ZZ*{i}~" for i in range(60))
    right = "\n".join(f"REF*ZZ*X{i}~" for i in range(60))

    result = compute_structural_diff(left, right)

    assert result.total_changes == 60
    assert result.score == 0

def test_ignore_control_numbers(valid_850_edi: str):
    resent = (valid_850_edi
              .replace("*000000001*0*P*>~", "*000000002*0*P*>~")
              .replace("IEA*1*000000001~", "IEA*1*000000002~")
              .replace("ST*850*0001~", "ST*850*0002~")
              .replace("SE*13*0001~", "SE*13*0002~"))

    strict = compute_structural_diff(valid_850_edi, resent)
    relaxed = compute_structural_diff(valid_850_edi, resent, CompareOptions(ignore_control_numbers=True))

    assert strict.total_changes == 4
    assert relaxed.total_changes == 0
    assert relaxed.score == 100

def test_ignore_timestamps(valid_850_edi: str):
    later = valid_850_edi.replace("*240715*1200*", "*240716*0900*").replace("*20240715*1200*1*", "*20240716*0900*1*")

    strict = compute_structural_diff(valid_850_edi, later)
    relaxed = compute_structural_diff(valid_850_edi, later, CompareOptions(ignore_timestamps=True))

    isa = strict.aligned_segments[0]
    assert isa.diffs == [9, 10]
    assert strict.total_changes == 2
    assert relaxed.total_changes == 0

def test_ignore_whitespace():
    left = "ST*850*0001~\nN1*ST*ACME *92~"
    right = "ST*850*0001~\nN1*ST*ACME*92~"

    assert compute_structural_diff(left, right).total_changes == 1
    assert compute_structural_diff(left, right, CompareOptions(ignore_whitespace=True)).total_changes == 0

def test_diff_across_formats(valid_850_edi: str):
    # Line breaks are irrelevant for the structural comparison.
    stream = valid_850_edi.replace("\n", "")

    assert compute_structural_diff(valid_850_edi, stream).total_changes == 0

def test_parse_segments(valid_orders_edifact: str):
    segments = parse_segments(valid_orders_edifact)

    assert [s.id for s in segments[:3]] == ['UNA', 'UNB', 'UNH']
    assert segments[2].elements == ['1', 'ORDERS:D:96A:UN']
    assert segments[2].line == 3
    assert parse_segments("") == []

import pytest
from edi_formatter import unwarp_edi, warp_edi

pytestmark = pytest.mark.format

def test_warp_joins_segments_into_one_stream(valid_850_edi: str):
    warped = warp_edi(valid_850_edi)

    assert '\n' not in warped
    assert warped.startswith("ISA*00*")
    assert "~GS*PO*" in warped
    assert warped.endswith("IEA*1*000000001~")

def test_unwarp_puts_one_segment_per_line(valid_850_edi: str):
    unwarped = unwarp_edi(warp_edi(valid_850_edi))

    assert unwarped == valid_850_edi
    assert len(unwarped.splitlines()) == 17

def test_unwarp_is_idempotent(valid_850_edi: str):
    once = unwarp_edi(valid_850_edi)
    assert unwarp_edi(once) == once

def test_unwarp_drops_stray_line_breaks_and_blank_segments():
    messy = "ST*850*0001~BEG*00*SA*\r\nPO1**20240715~~\n\nSE*3*0001~"

    assert unwarp_edi(messy) == "ST*850*0001~\nBEG*00*SA*PO1**20240715~\nSE*3*0001~"

def test_edifact_round_trip(valid_orders_edifact: str):
    unwarped = unwarp_edi(valid_orders_edifact)
    lines = unwarped.splitlines()

    assert lines[0] == "UNA:+.? '"
    assert lines[1] == "UNB+UNOC:3+SENDER:14+RECEIVER:14+240715:1200+REF001'"
    assert lines[-1] == "UNZ+1+REF001'"
    assert warp_edi(unwarped) == valid_orders_edifact

def test_unwarp_keeps_escaped_terminators():
    content = "UNH+1+ORDERS:D:96A:UN'FTX+AAA+++WHAT?'S UP'UNT+3+1'"

    assert unwarp_edi(content).splitlines() == [
        "UNH+1+ORDERS:D:96A:UN'",
        "FTX+AAA+++WHAT?'S UP'",
        "UNT+3+1'",
    ]

def test_line_terminated_content_only_loses_blank_lines():
    content = "ST*850*0001\n\nBEG*00*SA*PO1\r\nSE*3*0001\n"

    assert warp_edi(content) == "ST*850*0001\nBEG*00*SA*PO1\nSE*3*0001"
    assert unwarp_edi(content) == "ST*850*0001\nBEG*00*SA*PO1\nSE*3*0001"

def test_empty_input():
    assert warp_edi("") == ""
    assert unwarp_edi("") == ""

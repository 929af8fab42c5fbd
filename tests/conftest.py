import pytest
import sys
import os
import logging

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from schema_manager import SchemaManager, DEFAULT_SCHEMA_PATH

# ============================================================================
# PYTEST CONFIGURATION
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "format: Formatting tests")

@pytest.fixture(scope="session", autouse=True)
def setup_test_environment(pytestconfig):
    """Setup test environment with proper logging configuration."""
    log_level = pytestconfig.getoption("log_cli_level") or "WARNING"
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        force=True
    )

# ============================================================================
# SCHEMA FIXTURES
# ============================================================================

@pytest.fixture(scope="session")
def schema_manager():
    """Registry loaded from the bundled schema directory."""
    return SchemaManager(str(DEFAULT_SCHEMA_PATH))

# ============================================================================
# X12 DOCUMENT FIXTURES
# ============================================================================

# Every ISA below is exactly 106 characters including the terminator.
ISA_LINE = "ISA*00*          *00*          *ZZ*SENDERID       *ZZ*RECEIVERID     *240715*1200*U*00401*000000001*0*P*>~"

@pytest.fixture(scope="session")
def isa_line():
    return ISA_LINE

@pytest.fixture(scope="session")
def valid_850_edi():
    """Purchase order with one ship-to party and two line items."""
    return f"""
{ISA_LINE}
GS*PO*SENDER*RECEIVER*20240715*1200*1*X*004010~
ST*850*0001~
BEG*00*SA*PO12345**20240715~
REF*DP*038~
DTM*002*20240720~
N1*ST*ACME WAREHOUSE*92*0001~
N3*100 INDUSTRIAL WAY~
N4*SPRINGFIELD*IL*62701*US~
PO1*1*10*EA*12.50**VP*WIDGET-A~
PID*F****BLUE WIDGET~
PO1*2*5*CS*40.00**VP*WIDGET-B~
PID*F****RED WIDGET~
CTT*2~
SE*13*0001~
GE*1*1~
IEA*1*000000001~
""".strip()

@pytest.fixture(scope="session")
def valid_810_edi():
    """Invoice with bill-to and remit-to parties and two invoice lines."""
    return f"""
{ISA_LINE}
GS*IN*SENDER*RECEIVER*20240716*1200*2*X*004010~
ST*810*0001~
BIG*20240716*INV001*20240715*PO12345~
N1*BT*ACME CORP~
N1*RE*SUPPLIER INC~
ITD*01*3*2**10**30~
DTM*011*20240716~
IT1*1*10*EA*12.50**VP*WIDGET-A~
PID*F****BLUE WIDGET~
IT1*2*5*CS*40.00**VP*WIDGET-B~
TDS*32500~
CTT*2~
SE*12*0001~
GE*1*2~
IEA*1*000000001~
""".strip()

@pytest.fixture(scope="session")
def valid_856_edi():
    """Ship notice with shipment, order and item hierarchical levels."""
    return f"""
{ISA_LINE}
GS*SH*SENDER*RECEIVER*20240716*1200*3*X*004010~
ST*856*0001~
BSN*00*SHIP001*20240716*1200~
HL*1**S~
TD1*CTN25*2~
TD5*B*2*UPSN*M~
REF*BM*BOL123~
N1*ST*ACME WAREHOUSE*92*0001~
N3*100 INDUSTRIAL WAY~
N4*SPRINGFIELD*IL*62701~
HL*2*1*O~
PRF*PO12345~
HL*3*2*I~
LIN*1*VP*WIDGET-A~
SN1*1*10*EA~
CTT*3~
SE*16*0001~
GE*1*3~
IEA*1*000000001~
""".strip()

# ============================================================================
# EDIFACT DOCUMENT FIXTURES
# ============================================================================

@pytest.fixture(scope="session")
def valid_orders_edifact():
    """ORDERS message as a single stream, delimiters announced by UNA."""
    return (
        "UNA:+.? '"
        "UNB+UNOC:3+SENDER:14+RECEIVER:14+240715:1200+REF001'"
        "UNH+1+ORDERS:D:96A:UN'"
        "BGM+220+PO12345+9'"
        "DTM+137:20240715:102'"
        "NAD+BY+5412345000013::9'"
        "NAD+SU+4012345500004::9'"
        "LIN+1++4000862141404:SRS'"
        "QTY+21:10'"
        "PRI+AAA:12.50'"
        "UNS+S'"
        "CNT+2:1'"
        "UNT+11+1'"
        "UNZ+1+REF001'"
    )

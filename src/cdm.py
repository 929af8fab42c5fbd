from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Literal

from edi_schema_models import ElementDefinition, SegmentDefinition, Standard

# Canonical Data Model (CDM) for a tokenized EDI document and the reports built from it.
# Everything here is created fresh per call and never mutated afterwards.

Severity = Literal['ERROR', 'WARNING', 'INFO']
IssueSource = Literal['LOCAL', 'TP_RULE', 'AI', 'REMOTE']
TokenKind = Literal['SEGMENT_ID', 'ELEMENT', 'DELIMITER', 'TERMINATOR']

class DelimiterSet(BaseModel):
    """The structural characters of one interchange. A newline terminator means 'line break'."""
    model_config = ConfigDict(frozen=True)

    segment_terminator: str
    element_separator: str
    component_separator: str
    release_character: Optional[str] = None
    standard: Standard

    @property
    def is_line_terminated(self) -> bool:
        return self.segment_terminator in ('\n', '\r\n')

class ElementFinding(BaseModel):
    """Outcome of validating one element value against its definition."""
    model_config = ConfigDict(frozen=True)

    message: str
    severity: Literal['ERROR', 'WARNING']

class Token(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: TokenKind
    value: str
    position: int  # 0 = segment id, 1.. = element position, -1 = delimiter/terminator
    full_id: Optional[str] = None
    schema_ref: Optional[ElementDefinition] = None
    error: Optional[ElementFinding] = None

class ParsedSegment(BaseModel):
    """Represents a single tokenized EDI segment (one display line)."""
    model_config = ConfigDict(frozen=True)

    ordinal: int
    raw_text: str
    segment_id: str
    loop_depth: int
    is_loop_start: bool = False
    loop_end_ordinal: Optional[int] = None
    tokens: List[Token] = Field(default_factory=list)
    definition: Optional[SegmentDefinition] = None

    @property
    def elements(self) -> List[Token]:
        return [t for t in self.tokens if t.kind == 'ELEMENT']

    def get_element(self, position: int) -> Optional[str]:
        """Retrieves the value of an element by its position (1-based index)."""
        token = next((t for t in self.tokens if t.kind == 'ELEMENT' and t.position == position), None)
        return token.value if token else None

class ValidationIssue(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    severity: Severity
    line: Optional[int] = None
    segment_id: Optional[str] = None
    element_id: Optional[str] = None
    source: IssueSource = 'LOCAL'
    suggestion: Optional[str] = None

class EditorValidationResult(BaseModel):
    is_valid: bool
    issues: List[ValidationIssue] = Field(default_factory=list)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == 'ERROR']

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == 'WARNING']

class DocumentInfo(BaseModel):
    standard: Standard
    transaction_set: Optional[str] = None
    version: Optional[str] = None
    sender: Optional[str] = None
    receiver: Optional[str] = None
    control_number: Optional[str] = None
    segment_count: int = 0

# --- Diff records ---
DiffType = Literal['SAME', 'ADDED', 'REMOVED', 'MODIFIED', 'EMPTY']
StructuralDiffStatus = Literal['MATCH', 'MODIFIED', 'LEFT_ONLY', 'RIGHT_ONLY']

class DiffPart(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal['SAME', 'ADDED', 'REMOVED']
    value: str

class DiffLine(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: Optional[int] = None  # 1-based line number in its own file, None for a phantom gap
    content: str = ""
    type: DiffType
    parts: Optional[List[DiffPart]] = None

class LineDiffResult(BaseModel):
    left_lines: List[DiffLine] = Field(default_factory=list)
    right_lines: List[DiffLine] = Field(default_factory=list)
    change_count: int = 0

class EdiSegment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    elements: List[str] = Field(default_factory=list)
    raw: str
    line: int

class AlignedSegment(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: StructuralDiffStatus
    left: Optional[EdiSegment] = None
    right: Optional[EdiSegment] = None
    diffs: List[int] = Field(default_factory=list)  # 1-based element indices that differ

class StructuralDiffResult(BaseModel):
    aligned_segments: List[AlignedSegment] = Field(default_factory=list)
    summary: str
    score: int
    total_changes: int

class CompareOptions(BaseModel):
    ignore_control_numbers: bool = False
    ignore_timestamps: bool = False
    ignore_whitespace: bool = False

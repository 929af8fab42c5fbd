from pydantic import BaseModel, ConfigDict, Field, AliasChoices
from typing import List, Optional, Union, Dict, Literal, Annotated

DataType = Literal['AN', 'ID', 'DT', 'TM', 'N0', 'N2', 'R']
Standard = Literal['X12', 'EDIFACT', 'UNKNOWN']

# --- Models for Element and Segment Definitions ---
class ElementDefinition(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    position: int = Field(validation_alias=AliasChoices("position", "index"))
    id: str
    name: str
    data_type: DataType = Field(validation_alias=AliasChoices("data_type", "dataType", "type"))
    min_length: int = Field(validation_alias=AliasChoices("min_length", "minLength", "min"))
    max_length: int = Field(validation_alias=AliasChoices("max_length", "maxLength", "max"))
    qualifiers: Optional[Dict[str, str]] = Field(None, description="Map of allowed code -> meaning for ID elements.")

class SegmentDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    purpose: str = ""
    elements: List[ElementDefinition] = Field(default_factory=list)

    def get_element(self, position: int) -> Optional[ElementDefinition]:
        """Returns the element definition at a 1-based position, if the dictionary declares one."""
        return next((el for el in self.elements if el.position == position), None)

class SegmentDictionary(BaseModel):
    standard: Standard
    version: str
    description: str = ""
    segments: Dict[str, SegmentDefinition] = Field(default_factory=dict)

# --- Structural (grammar) Models ---
class StructureSegment(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: Literal['segment'] = 'segment'
    segment_id: str = Field(validation_alias=AliasChoices("segment_id", "id"))
    mandatory: bool = Field(False, validation_alias=AliasChoices("mandatory", "req"))
    repeatable: bool = Field(False, validation_alias=AliasChoices("repeatable", "repeat"))

class StructureLoop(BaseModel):
    """
    A repeatable group of segments. The loop's own segment_id is its trigger segment,
    and children[0] re-declares that same trigger as the first entry of the loop body.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: Literal['loop'] = 'loop'
    segment_id: str = Field(validation_alias=AliasChoices("segment_id", "id"))
    mandatory: bool = Field(False, validation_alias=AliasChoices("mandatory", "req"))
    repeatable: bool = Field(False, validation_alias=AliasChoices("repeatable", "repeat"))
    children: List['StructureNode'] = Field(default_factory=list)

StructureNode = Annotated[Union[StructureLoop, StructureSegment], Field(discriminator='type')]

class TransactionGrammar(BaseModel):
    code: str
    name: str
    standard: Standard = 'X12'
    description: Optional[str] = None
    structure: List[StructureNode]

# Rebuild models to resolve forward references.
StructureLoop.model_rebuild()
TransactionGrammar.model_rebuild()

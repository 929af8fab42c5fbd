import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from edi_schema_models import (
    ElementDefinition,
    SegmentDefinition,
    SegmentDictionary,
    TransactionGrammar,
)

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA_PATH = Path(__file__).parent / "schemas"

class SchemaManager:
    """
    Read-only registry of segment dictionaries and transaction grammars.
    Loads `segments.*.json` and `transactions/*.json` from the schema directory once;
    everything handed out afterwards is a frozen model and safe to share.
    """

    def __init__(self, schema_base_path: Optional[str] = None):
        self.schema_base_path = Path(schema_base_path) if schema_base_path else DEFAULT_SCHEMA_PATH
        self._dictionaries: Dict[str, SegmentDictionary] = {}
        self._transactions: Dict[str, TransactionGrammar] = {}
        self._load_schemas()

    def _load_schemas(self):
        """Load segment dictionaries and transaction grammars from the schema directory."""
        if not self.schema_base_path.exists():
            logger.warning(f"Schema base path does not exist: {self.schema_base_path}")
            return

        logger.info(f"Loading EDI schemas from: {self.schema_base_path}")

        for dictionary_file in sorted(self.schema_base_path.glob("segments.*.json")):
            try:
                with open(dictionary_file, 'r') as f:
                    dictionary = SegmentDictionary.model_validate(json.load(f))
                self._dictionaries[dictionary.standard] = dictionary
                logger.info(f"Loaded {dictionary.standard} segment dictionary {dictionary_file.name} "
                            f"({len(dictionary.segments)} segments)")
            except Exception as e:
                logger.error(f"Failed to load segment dictionary {dictionary_file.name}: {e}")

        transactions_path = self.schema_base_path / "transactions"
        for grammar_file in sorted(transactions_path.glob("*.json")):
            try:
                with open(grammar_file, 'r') as f:
                    grammar = TransactionGrammar.model_validate(json.load(f))
                self._transactions[grammar.code] = grammar
                logger.info(f"Loaded transaction grammar: {grammar.code} ({grammar.name})")
            except Exception as e:
                logger.error(f"Failed to load transaction grammar {grammar_file.name}: {e}")

    def get_segment(self, segment_id: str, standard: str = "X12") -> Optional[SegmentDefinition]:
        """
        Look up a segment definition.

        EDIFACT lookups fall back to the X12 dictionary only for ids the EDIFACT
        dictionary does not declare, so that shared codes such as DTM or QTY keep
        their EDIFACT layout.

        Args:
            segment_id: Segment tag, e.g. "BEG"
            standard: "X12" or "EDIFACT"

        Returns:
            SegmentDefinition or None if the segment is unknown
        """
        dictionary = self._dictionaries.get(standard)
        if dictionary and segment_id in dictionary.segments:
            return dictionary.segments[segment_id]
        if standard != "X12":
            fallback = self._dictionaries.get("X12")
            if fallback:
                return fallback.segments.get(segment_id)
        return None

    def get_element(self, segment_id: str, position: int, standard: str = "X12") -> Optional[ElementDefinition]:
        segment = self.get_segment(segment_id, standard)
        return segment.get_element(position) if segment else None

    def is_known_segment(self, segment_id: str, standard: str = "X12") -> bool:
        return self.get_segment(segment_id, standard) is not None

    def get_transaction(self, code: str) -> Optional[TransactionGrammar]:
        """
        Get the grammar for a transaction set code.

        Args:
            code: Transaction set code (e.g., "850" or "ORDERS")

        Returns:
            TransactionGrammar or None if not found
        """
        return self._transactions.get(code)

    def list_transactions(self) -> List[str]:
        """List available transaction set codes."""
        return sorted(self._transactions.keys())

    def list_segments(self, standard: str = "X12") -> List[str]:
        dictionary = self._dictionaries.get(standard)
        return sorted(dictionary.segments.keys()) if dictionary else []

    def reload_schemas(self):
        """Reload all schemas from filesystem."""
        self._dictionaries.clear()
        self._transactions.clear()
        self._load_schemas()

@lru_cache(maxsize=1)
def get_schema_manager() -> SchemaManager:
    """Process-wide registry built from the bundled schema directory."""
    return SchemaManager()

"""
X12 EDI Base Tokenizer and Models.

Provides core X12 parsing functionality for 271 eligibility responses:
- Tokenizer for segment/element/composite/repetition parsing
- Segment and loop data models
- Decode warnings for recovered malformed segments
- Exception hierarchy for decode failures
"""

from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Tuple
from enum import Enum
import re
import logging

logger = logging.getLogger(__name__)


# =============================================================================
# Enums
# =============================================================================


class SegmentID(str, Enum):
    """X12 segment identifiers used by the 271 decoder."""

    # Envelope
    ISA = "ISA"  # Interchange Control Header
    IEA = "IEA"  # Interchange Control Trailer
    GS = "GS"  # Functional Group Header
    GE = "GE"  # Functional Group Trailer
    ST = "ST"  # Transaction Set Header
    SE = "SE"  # Transaction Set Trailer

    # Header
    BHT = "BHT"  # Beginning of Hierarchical Transaction

    # Hierarchical
    HL = "HL"  # Hierarchical Level
    TRN = "TRN"  # Trace Number

    # Names and Identification
    NM1 = "NM1"  # Individual or Organizational Name
    N3 = "N3"  # Party Location (Address)
    N4 = "N4"  # Geographic Location
    REF = "REF"  # Reference Information
    DMG = "DMG"  # Demographic Information
    INS = "INS"  # Insured Benefit
    AAA = "AAA"  # Request Validation

    # Benefits
    EB = "EB"  # Eligibility or Benefit Information
    MSG = "MSG"  # Message Text
    DTP = "DTP"  # Date/Time Period
    LS = "LS"  # Loop Header
    LE = "LE"  # Loop Trailer


# Segments that close every open loop
ENVELOPE_TRAILERS = frozenset({SegmentID.SE.value, SegmentID.GE.value, SegmentID.IEA.value})

SEGMENT_TAG_PATTERN = re.compile(r"^[A-Z][A-Z0-9]{1,2}$")


# =============================================================================
# Exceptions
# =============================================================================


class X12ValidationError(Exception):
    """X12 validation error with detailed context."""

    def __init__(
        self,
        message: str,
        segment_id: Optional[str] = None,
        segment_position: Optional[int] = None,
        element_position: Optional[int] = None,
        raw_segment: Optional[str] = None,
    ):
        self.message = message
        self.segment_id = segment_id
        self.segment_position = segment_position
        self.element_position = element_position
        self.raw_segment = raw_segment
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        parts = [self.message]
        if self.segment_id:
            parts.append(f"Segment: {self.segment_id}")
        if self.segment_position is not None:
            parts.append(f"Position: {self.segment_position}")
        if self.element_position is not None:
            parts.append(f"Element: {self.element_position}")
        return " | ".join(parts)


class X12ParseError(X12ValidationError):
    """Error during X12 parsing."""

    pass


class StructuralViolationError(X12ParseError):
    """A loop-ordering rule is violated (e.g. dependent without subscriber)."""

    pass


class MissingRequiredLoopError(X12ParseError):
    """The document has no subscriber-level loop."""

    pass


# =============================================================================
# Data Models
# =============================================================================


@dataclass(frozen=True)
class DecodeWarning:
    """A recovered decode problem, usually a dropped malformed segment."""

    message: str
    position: int
    raw_segment: Optional[str] = None


@dataclass
class X12Segment:
    """
    Represents a single X12 segment.

    Example: NM1*IL*1*DOE*JOHN****MI*12345~
    - segment_id: NM1
    - elements: ['IL', '1', 'DOE', 'JOHN', '', '', '', 'MI', '12345']
    """

    segment_id: str
    elements: List[str]
    position: int = 0
    component_separator: str = ":"
    repetition_separator: Optional[str] = "^"
    element_separator: str = "*"

    def get_element(self, index: int, default: str = "") -> str:
        """Get element at index (0-based after segment ID)."""
        if 0 <= index < len(self.elements):
            return self.elements[index]
        return default

    def get_value(self, index: int) -> Optional[str]:
        """Get element at index, or None when missing or empty."""
        value = self.get_element(index).strip()
        return value or None

    def get_composite(self, index: int) -> List[str]:
        """Get composite element as list of sub-elements."""
        value = self.get_element(index)
        if value:
            return value.split(self.component_separator)
        return []

    def get_repetitions(self, index: int) -> List[str]:
        """Get a repeating element as a list of its non-empty repetitions."""
        value = self.get_element(index)
        if not value:
            return []
        if not self.repetition_separator:
            return [value]
        return [v for v in value.split(self.repetition_separator) if v]

    @property
    def element_count(self) -> int:
        return len(self.elements)

    def __str__(self) -> str:
        if not self.elements:
            return self.segment_id
        return self.element_separator.join([self.segment_id] + self.elements)


@dataclass
class X12Loop:
    """
    Represents an X12 loop (group of related segments).

    Loops live in an arena owned by the loop assembler; ``parent`` and
    ``children`` are arena indices.
    """

    loop_id: str
    segments: List[X12Segment] = field(default_factory=list)
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)
    hl_id: Optional[str] = None

    def find_segment(self, segment_id: str) -> Optional[X12Segment]:
        """Find first segment with given ID."""
        for segment in self.segments:
            if segment.segment_id == segment_id:
                return segment
        return None

    def find_segments(self, segment_id: str) -> List[X12Segment]:
        """Find all segments with given ID."""
        return [s for s in self.segments if s.segment_id == segment_id]


# =============================================================================
# Tokenizer
# =============================================================================


class X12Tokenizer:
    """
    X12 EDI tokenizer.

    Handles parsing of raw X12 content into segments and elements.
    Automatically detects delimiters from the ISA segment and falls back to
    the standard delimiters when there is none.

    Iterating a tokenizer is lazy and restartable: every ``iter()`` call walks
    the content again from the start. Malformed segments are skipped and
    recorded in ``warnings``.
    """

    # Default delimiters
    DEFAULT_ELEMENT_SEPARATOR = "*"
    DEFAULT_SEGMENT_TERMINATOR = "~"
    DEFAULT_COMPONENT_SEPARATOR = ":"
    DEFAULT_REPETITION_SEPARATOR = "^"

    ISA_LENGTH = 106

    def __init__(self, content: Optional[str] = None):
        self._content = content
        self.element_separator = self.DEFAULT_ELEMENT_SEPARATOR
        self.segment_terminator = self.DEFAULT_SEGMENT_TERMINATOR
        self.component_separator = self.DEFAULT_COMPONENT_SEPARATOR
        self.repetition_separator: Optional[str] = self.DEFAULT_REPETITION_SEPARATOR
        self.warnings: List[DecodeWarning] = []
        self._header_warning: Optional[DecodeWarning] = None

        if content:
            self._configure_delimiters(content.lstrip())

    def _configure_delimiters(self, content: str) -> None:
        self.element_separator = self.DEFAULT_ELEMENT_SEPARATOR
        self.segment_terminator = self.DEFAULT_SEGMENT_TERMINATOR
        self.component_separator = self.DEFAULT_COMPONENT_SEPARATOR
        self.repetition_separator = self.DEFAULT_REPETITION_SEPARATOR
        if not content.startswith("ISA"):
            return
        try:
            (
                self.element_separator,
                self.segment_terminator,
                self.component_separator,
                self.repetition_separator,
            ) = self.detect_delimiters(content)
        except X12ParseError as e:
            logger.warning(f"Unusable ISA header, using default delimiters: {e.message}")
            self._header_warning = DecodeWarning(
                message=f"Unusable ISA header, default delimiters used: {e.message}",
                position=0,
                raw_segment=content[: self.ISA_LENGTH],
            )

    def detect_delimiters(self, content: str) -> Tuple[str, str, str, Optional[str]]:
        """
        Detect delimiters from ISA segment.

        ISA is fixed width with 16 elements:
        - Element separator: position 3
        - Repetition separator: ISA11 (5010), absent when alphanumeric (4010 "U")
        - Component separator: ISA16
        - Segment terminator: the character right after ISA16
        """
        if not content.startswith("ISA"):
            raise X12ParseError("Content must start with ISA segment")

        if len(content) < self.ISA_LENGTH:
            raise X12ParseError("ISA segment must be at least 106 characters", segment_id="ISA")

        element_sep = content[3]
        if element_sep.isalnum() or element_sep.isspace():
            raise X12ParseError("Invalid element separator in ISA", segment_id="ISA")

        # ISA16 follows the 16th element separator, terminator follows ISA16
        isa_elements = content.split(element_sep, 16)
        if len(isa_elements) < 17 or len(isa_elements[16]) < 2:
            raise X12ParseError("ISA segment has fewer than 16 elements", segment_id="ISA")

        component_sep = isa_elements[16][0]
        segment_term = isa_elements[16][1]

        rep_sep: Optional[str] = isa_elements[11]
        if len(rep_sep) != 1 or rep_sep.isalnum():
            rep_sep = None

        return element_sep, segment_term, component_sep, rep_sep

    def __iter__(self) -> Iterator[X12Segment]:
        if self._content is None:
            raise X12ParseError("No content provided to tokenize")
        self.warnings = [self._header_warning] if self._header_warning else []
        return self._iter_segments(self._content)

    def _iter_segments(self, content: str) -> Iterator[X12Segment]:
        for line_break in ("\r", "\n"):
            if line_break != self.segment_terminator:
                content = content.replace(line_break, "")
        # Leading whitespace was already skipped when reading the ISA header
        content = content.lstrip().rstrip(" \t")
        raw_segments = content.split(self.segment_terminator)

        # The chunk after the final terminator is either empty or unterminated
        trailing = raw_segments.pop() if raw_segments else ""

        for position, raw in enumerate(raw_segments):
            raw = raw.strip()
            if not raw:
                self._warn("Empty segment dropped", position, raw)
                continue

            elements = raw.split(self.element_separator)
            segment_id = elements[0].strip()
            if not SEGMENT_TAG_PATTERN.match(segment_id):
                self._warn("Segment with invalid tag dropped", position, raw)
                continue

            yield X12Segment(
                segment_id=segment_id,
                elements=elements[1:],
                position=position,
                component_separator=self.component_separator,
                repetition_separator=self.repetition_separator,
                element_separator=self.element_separator,
            )

        if trailing.strip():
            self._warn("Unterminated segment dropped", len(raw_segments), trailing.strip())

    def _warn(self, message: str, position: int, raw: str) -> None:
        logger.warning(f"{message} at position {position}")
        self.warnings.append(DecodeWarning(message=message, position=position, raw_segment=raw))

    def tokenize(self, content: Optional[str] = None) -> List[X12Segment]:
        """
        Tokenize X12 content into segments.

        Args:
            content: Raw X12 EDI content (uses constructor content if not provided)

        Returns:
            List of X12Segment objects
        """
        if content is not None:
            self._content = content
            self._header_warning = None
            self._configure_delimiters(content.lstrip())
        return list(self)

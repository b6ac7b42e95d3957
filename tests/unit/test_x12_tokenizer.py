"""
Unit Tests for the X12 Tokenizer.

Tests:
- Delimiter discovery from the ISA header
- Segment, composite and repetition access
- Recovery from malformed segments
"""

import pytest

from src.services.edi.x12_base import (
    X12ParseError,
    X12Segment,
    X12Tokenizer,
)
from tests.fixtures import (
    BCBS_MA_PATIENT_IS_DEPENDENT_AND_HAS_MEDICARE,
    CUSTOM_DELIMITERS,
    MALFORMED_SEGMENTS,
    NO_ENVELOPE_NO_HL,
)


# =============================================================================
# Delimiters
# =============================================================================


class TestDelimiterDiscovery:
    """Test delimiter detection."""

    def test_standard_delimiters_from_isa(self):
        """Test standard delimiters are read from ISA."""
        tokenizer = X12Tokenizer(BCBS_MA_PATIENT_IS_DEPENDENT_AND_HAS_MEDICARE)
        assert tokenizer.element_separator == "*"
        assert tokenizer.segment_terminator == "~"
        assert tokenizer.component_separator == ":"
        assert tokenizer.repetition_separator == "^"

    def test_custom_delimiters_from_isa(self):
        """Test non-standard delimiters including a newline terminator."""
        tokenizer = X12Tokenizer(CUSTOM_DELIMITERS)
        assert tokenizer.element_separator == "|"
        assert tokenizer.segment_terminator == "\n"
        assert tokenizer.component_separator == ">"
        assert tokenizer.repetition_separator == "!"

        segments = tokenizer.tokenize()
        assert [s.segment_id for s in segments][:3] == ["ISA", "ST", "HL"]
        eb = next(s for s in segments if s.segment_id == "EB")
        assert eb.get_repetitions(2) == ["30", "98"]
        assert tokenizer.warnings == []

    def test_defaults_without_isa(self):
        """Test defaults are used when there is no ISA header."""
        tokenizer = X12Tokenizer(NO_ENVELOPE_NO_HL)
        assert tokenizer.element_separator == "*"
        assert tokenizer.segment_terminator == "~"
        assert tokenizer.tokenize()[0].segment_id == "ST"
        assert tokenizer.warnings == []

    def test_alphanumeric_isa11_has_no_repetition_separator(self):
        """Test a 4010-style ISA11 ('U') disables repetition splitting."""
        content = BCBS_MA_PATIENT_IS_DEPENDENT_AND_HAS_MEDICARE.replace(
            "*1200*^*00501*", "*1200*U*00501*", 1
        )
        tokenizer = X12Tokenizer(content)
        assert tokenizer.repetition_separator is None

        eb = next(s for s in tokenizer if s.segment_id == "EB" and "^" in s.get_element(2))
        assert eb.get_repetitions(2) == ["1^33^35^88^AL^MH^UC"]

    def test_truncated_isa_falls_back_to_defaults(self):
        """Test a damaged ISA header degrades to defaults with a warning."""
        tokenizer = X12Tokenizer("ISA*00*SHORT~ST*271*0001~SE*2*0001~")
        assert tokenizer.element_separator == "*"

        segments = tokenizer.tokenize()
        assert [s.segment_id for s in segments] == ["ISA", "ST", "SE"]
        assert len(tokenizer.warnings) == 1
        assert "ISA" in tokenizer.warnings[0].message

    def test_detect_delimiters_rejects_non_isa(self):
        """Test direct detection requires an ISA header."""
        with pytest.raises(X12ParseError):
            X12Tokenizer().detect_delimiters("ST*271*0001~")


# =============================================================================
# Segments
# =============================================================================


class TestSegments:
    """Test segment parsing."""

    def test_segments_in_source_order(self):
        """Test segments keep their order and positions."""
        segments = X12Tokenizer(BCBS_MA_PATIENT_IS_DEPENDENT_AND_HAS_MEDICARE).tokenize()
        assert segments[0].segment_id == "ISA"
        assert segments[-1].segment_id == "IEA"
        assert [s.position for s in segments] == list(range(len(segments)))

    def test_element_access(self):
        """Test element access is 0-based after the tag."""
        segment = X12Segment(
            segment_id="NM1",
            elements=["IL", "1", "DOE", "JOHN", "", "", "", "MI", "12345"],
        )
        assert segment.get_element(0) == "IL"
        assert segment.get_value(2) == "DOE"
        assert segment.get_value(4) is None
        assert segment.get_value(20) is None
        assert segment.get_element(20, "default") == "default"
        assert segment.element_count == 9
        assert str(segment) == "NM1*IL*1*DOE*JOHN****MI*12345"

    def test_composite_access(self):
        """Test composite elements split on the component separator."""
        segment = X12Segment(segment_id="EB", elements=["1", "", "", "", "", "", "", "", "", "", "", "", "HC:99213"])
        assert segment.get_composite(12) == ["HC", "99213"]
        assert segment.get_composite(1) == []

    def test_repetitions_drop_empty_parts(self):
        """Test repetitions skip empty entries."""
        segment = X12Segment(segment_id="EB", elements=["1", "", "30^^98"])
        assert segment.get_repetitions(2) == ["30", "98"]
        assert segment.get_repetitions(1) == []

    def test_iteration_is_restartable(self):
        """Test iterating twice yields the same segments."""
        tokenizer = X12Tokenizer(NO_ENVELOPE_NO_HL)
        first = [str(s) for s in tokenizer]
        second = [str(s) for s in tokenizer]
        assert first == second
        assert len(first) == 10

    def test_line_breaks_ignored(self):
        """Test CRLF between segments does not leak into elements."""
        content = "ST*271*0001~\r\nHL*1**20*1~\r\nSE*3*0001~\r\n"
        segments = X12Tokenizer(content).tokenize()
        assert [s.segment_id for s in segments] == ["ST", "HL", "SE"]
        assert segments[2].get_element(1) == "0001"

    def test_segments_render_with_source_delimiters(self):
        """Test str() of a segment uses the interchange's element separator."""
        segments = X12Tokenizer(CUSTOM_DELIMITERS).tokenize()
        assert [str(s) for s in segments[1:]] == CUSTOM_DELIMITERS.splitlines()[1:]

    def test_leading_line_break_with_newline_terminator(self):
        """Test a leading line break is skipped when newline ends segments."""
        tokenizer = X12Tokenizer("\n" + CUSTOM_DELIMITERS)
        segments = tokenizer.tokenize()

        assert tokenizer.segment_terminator == "\n"
        assert tokenizer.warnings == []
        assert segments[0].segment_id == "ISA"
        assert segments[-1].segment_id == "SE"

    def test_no_content_raises(self):
        """Test iterating without content raises."""
        with pytest.raises(X12ParseError):
            X12Tokenizer().tokenize()


# =============================================================================
# Malformed Segments
# =============================================================================


class TestMalformedSegments:
    """Test malformed segments are skipped and recorded."""

    def test_malformed_segments_dropped_with_warnings(self):
        """Test empty, invalid-tag and unterminated segments become warnings."""
        tokenizer = X12Tokenizer(MALFORMED_SEGMENTS)
        segments = tokenizer.tokenize()

        tags = [s.segment_id for s in segments]
        assert "12X" not in tags
        assert tags.count("EB") == 1
        assert tags[-1] == "SE"

        messages = [w.message for w in tokenizer.warnings]
        assert messages == [
            "Empty segment dropped",
            "Segment with invalid tag dropped",
            "Unterminated segment dropped",
        ]
        assert tokenizer.warnings[1].raw_segment == "12X*BROKEN"
        assert tokenizer.warnings[2].raw_segment == "EB*C*IND*30"

    def test_warnings_reset_on_each_pass(self):
        """Test warnings are not duplicated by a second pass."""
        tokenizer = X12Tokenizer(MALFORMED_SEGMENTS)
        tokenizer.tokenize()
        tokenizer.tokenize()
        assert len(tokenizer.warnings) == 3

    def test_tokenize_new_content(self):
        """Test tokenize() reconfigures delimiters for new content."""
        tokenizer = X12Tokenizer(CUSTOM_DELIMITERS)
        segments = tokenizer.tokenize(NO_ENVELOPE_NO_HL)
        assert tokenizer.element_separator == "*"
        assert segments[0].segment_id == "ST"

"""
X12 271 Eligibility Response Parser.

Decodes HIPAA 5010 X12 271 eligibility responses into immutable
``EligibilityResponse`` graphs:
- Tokenizes the interchange (delimiters from ISA)
- Assembles source/receiver/subscriber/dependent/benefit loops
- Builds the insured parties and resolves which one is the patient
- Extracts benefits with their messages, dates and references

The parser keeps no per-document state, so one instance can decode documents
from several threads at once.
"""

from typing import List, Optional, Tuple
import logging

from src.services.edi import code_tables
from src.services.edi.x12_base import (
    DecodeWarning,
    MissingRequiredLoopError,
    SegmentID,
    X12Loop,
    X12ParseError,
    X12Segment,
    X12Tokenizer,
)
from src.services.edi.x12_271_loops import LoopKind, LoopTree, X12271LoopAssembler
from src.services.edi.x12_271_models import (
    Benefit,
    BenefitDate,
    EligibilityResponse,
    Name,
    Party,
    Reference,
    Rejection,
)

logger = logging.getLogger(__name__)


# NM101 - Entity Identifier Codes of insured parties
SUBSCRIBER_ENTITY = "IL"
DEPENDENT_ENTITY = "03"


class X12271Parser:
    """
    X12 271 Eligibility Response Parser.

    Usage:
        parser = X12271Parser()
        response = parser.parse(x12_content)
        if response.is_active:
            print(response.patient.name.last)
    """

    def parse(self, content: str) -> EligibilityResponse:
        """
        Parse a 271 response for its first subscriber.

        Args:
            content: Raw X12 271 content

        Returns:
            EligibilityResponse for the first subscriber loop

        Raises:
            X12ParseError: If content is empty
            StructuralViolationError: If loops are out of order
            MissingRequiredLoopError: If there is no subscriber loop
        """
        responses = self.parse_all(content)
        if len(responses) > 1:
            logger.warning(
                f"271 response has {len(responses)} subscriber loops; returning the first"
            )
        return responses[0]

    def parse_all(self, content: str) -> Tuple[EligibilityResponse, ...]:
        """Parse a 271 response into one EligibilityResponse per subscriber loop."""
        if not content or not content.strip():
            raise X12ParseError("Empty content provided")

        tokenizer = X12Tokenizer(content)
        tree = X12271LoopAssembler().assemble(tokenizer)
        warnings = tuple(tokenizer.warnings) + tuple(tree.warnings)

        subscribers = tree.subscribers()
        if not subscribers:
            raise MissingRequiredLoopError("No subscriber loop found in 271 response")

        control_number = self._control_number(tree)
        responses = tuple(
            self._build_response(tree, index, control_number, warnings)
            for index in subscribers
        )
        logger.debug(
            f"Decoded 271: {len(responses)} subscriber(s), {len(warnings)} warning(s)"
        )
        return responses

    # =========================================================================
    # Response
    # =========================================================================

    def _build_response(
        self,
        tree: LoopTree,
        subscriber_index: int,
        control_number: Optional[str],
        warnings: Tuple[DecodeWarning, ...],
    ) -> EligibilityResponse:
        subscriber = self._build_party(tree, subscriber_index)

        dependent = None
        dependents = tree.dependents_of(subscriber_index)
        if dependents:
            if len(dependents) > 1:
                logger.warning(
                    f"Subscriber loop has {len(dependents)} dependent loops; using the first"
                )
            dependent = self._build_party(tree, dependents[0])

        source = tree.ancestor(subscriber_index, LoopKind.INFORMATION_SOURCE)
        receiver = tree.ancestor(subscriber_index, LoopKind.INFORMATION_RECEIVER)

        party_loops = [subscriber_index] + dependents[:1]
        # AAA may sit at any level, including the 2110C/2110D benefit loops
        rejection_loops = [i for i in (source, receiver) if i is not None]
        for index in party_loops:
            rejection_loops.append(index)
            rejection_loops.extend(tree.benefits_of(index))

        return EligibilityResponse(
            subscriber=subscriber,
            dependent=dependent,
            patient=dependent if dependent is not None else subscriber,
            payer_name=self._entity_name(tree, source),
            receiver_name=self._entity_name(tree, receiver),
            trace_number=self._trace_number(tree, party_loops),
            control_number=control_number,
            rejections=tuple(
                self._build_rejection(seg)
                for index in rejection_loops
                for seg in tree.loops[index].find_segments(SegmentID.AAA.value)
            ),
            warnings=warnings,
        )

    def _control_number(self, tree: LoopTree) -> Optional[str]:
        isa = tree.loops[LoopTree.ROOT].find_segment(SegmentID.ISA.value)
        return isa.get_value(12) if isa else None  # ISA13

    def _entity_name(self, tree: LoopTree, index: Optional[int]) -> Optional[str]:
        if index is None:
            return None
        nm1 = tree.loops[index].find_segment(SegmentID.NM1.value)
        return nm1.get_value(2) if nm1 else None  # NM103

    def _trace_number(self, tree: LoopTree, party_loops: List[int]) -> Optional[str]:
        for index in party_loops:
            trn = tree.loops[index].find_segment(SegmentID.TRN.value)
            if trn and trn.get_value(1):
                return trn.get_value(1)  # TRN02
        return None

    def _build_rejection(self, seg: X12Segment) -> Rejection:
        """AAA*N**72*C~"""
        reason_code = seg.get_value(2)  # AAA03
        return Rejection(
            valid=seg.get_element(0) == "Y",  # AAA01
            reject_reason_code=reason_code,
            reject_reason=code_tables.reject_reason(reason_code),
            follow_up_action_code=seg.get_value(3),  # AAA04
        )

    # =========================================================================
    # Entities
    # =========================================================================

    def _build_party(self, tree: LoopTree, index: int) -> Party:
        loop = tree.loops[index]
        name, member_id = self._build_name(loop)
        dmg = loop.find_segment(SegmentID.DMG.value)

        return Party(
            name=name,
            benefits=tuple(self._build_benefit(tree.loops[b]) for b in tree.benefits_of(index)),
            member_id=member_id,
            date_of_birth=dmg.get_value(1) if dmg else None,  # DMG02
            gender=dmg.get_value(2) if dmg else None,  # DMG03
            references=self._references(loop.segments),
        )

    def _build_name(self, loop: X12Loop) -> Tuple[Name, Optional[str]]:
        """
        Name from NM1 and address from the N3/N4 that follow it.

        NM1*IL*1*DOE*JOHN*M**JR*MI*12345~
        N3*123 MAIN ST*APT 4~
        N4*ANYTOWN*CA*12345~
        """
        position = self._name_position(loop)
        if position is None:
            return Name(), None

        nm1 = loop.segments[position]
        following = loop.segments[position + 1:]
        n3 = next((s for s in following if s.segment_id == SegmentID.N3.value), None)
        n4 = next((s for s in following if s.segment_id == SegmentID.N4.value), None)

        name = Name(
            last=nm1.get_value(2),  # NM103
            first=nm1.get_value(3),  # NM104
            middle=nm1.get_value(4),  # NM105
            suffix=nm1.get_value(6),  # NM107
            address=n3.get_value(0) if n3 else None,  # N301
            address_2=n3.get_value(1) if n3 else None,  # N302
            city=n4.get_value(0) if n4 else None,  # N401
            state=n4.get_value(1) if n4 else None,  # N402
            zip=n4.get_value(2) if n4 else None,  # N403
        )
        return name, nm1.get_value(8)  # NM109

    def _name_position(self, loop: X12Loop) -> Optional[int]:
        first_nm1 = None
        for position, seg in enumerate(loop.segments):
            if seg.segment_id != SegmentID.NM1.value:
                continue
            if seg.get_element(0) in (SUBSCRIBER_ENTITY, DEPENDENT_ENTITY):
                return position
            if first_nm1 is None:
                first_nm1 = position
        return first_nm1

    def _references(self, segments: List[X12Segment]) -> Tuple[Reference, ...]:
        return tuple(
            (seg.get_value(0), seg.get_value(1))  # REF01, REF02
            for seg in segments
            if seg.segment_id == SegmentID.REF.value
        )

    # =========================================================================
    # Benefits
    # =========================================================================

    def _build_benefit(self, loop: X12Loop) -> Benefit:
        """
        Build a Benefit from an EB segment and the segments that follow it.

        EB*A*IND*33^50^98*PR*PPO PLAN*27**.2***N*N~
        DTP*356*D8*19641217~
        MSG*AFTER DEDUCTIBLE~

        Note: X12Segment uses 0-based indexing for elements.
        EB01 = elements[0], EB02 = elements[1], etc.
        """
        eb = loop.segments[0]
        info_code = eb.get_value(0)  # EB01
        service_type_codes = [c.strip() for c in eb.get_repetitions(2) if c.strip()]  # EB03
        insurance_type_code = eb.get_value(3)  # EB04

        messages: List[str] = []
        dates: List[BenefitDate] = []
        trailing: List[X12Segment] = []
        in_related_entity = False

        for seg in loop.segments[1:]:
            tag = seg.segment_id
            # LS/LE wrap the benefit related entity (2120) loop
            if tag == SegmentID.LS.value:
                in_related_entity = True
                continue
            if tag == SegmentID.LE.value:
                in_related_entity = False
                continue
            if in_related_entity:
                continue

            trailing.append(seg)
            if tag == SegmentID.MSG.value:
                message = seg.get_element(0)  # MSG01
                if message:
                    messages.append(message)
            elif tag == SegmentID.DTP.value:
                qualifier_code = seg.get_value(0)  # DTP01
                dates.append(
                    BenefitDate(
                        qualifier_code=qualifier_code,
                        qualifier=code_tables.date_qualifier(qualifier_code),
                        format_qualifier=seg.get_value(1),  # DTP02
                        value=seg.get_value(2),  # DTP03
                    )
                )

        first_date = dates[0] if dates else None

        return Benefit(
            info=code_tables.benefit_status(info_code),
            info_code=info_code,
            coverage_level=code_tables.coverage_level(eb.get_value(1)),  # EB02
            service_type=self._service_type(service_type_codes),
            service_type_codes=frozenset(service_type_codes),
            insurance_type=code_tables.insurance_type(insurance_type_code),
            insurance_type_code=insurance_type_code,
            plan_coverage_description=eb.get_value(4),  # EB05
            time_period=code_tables.time_period(eb.get_value(5)),  # EB06
            monetary_amount=eb.get_value(6),  # EB07
            percent=eb.get_value(7) if info_code == code_tables.CO_INSURANCE_CODE else None,  # EB08
            quantity=eb.get_value(9),  # EB10
            yes_no_response_code=code_tables.yes_no(eb.get_value(10)),  # EB11
            plan_network_indicator=code_tables.plan_network_indicator(eb.get_value(11)),  # EB12
            date_qualifier=first_date.qualifier if first_date else None,
            date_of_service=first_date.value if first_date else None,
            messages=tuple(messages),
            dates=tuple(dates),
            references=self._references(trailing),
        )

    def _service_type(self, codes: List[str]) -> Optional[str]:
        """Description of the first service type code that resolves."""
        for code in codes:
            description = code_tables.service_type(code)
            if description:
                return description
        return None

"""
X12 271 Loop Assembler.

Rebuilds the hierarchical loops of a 271 response from the flat segment
stream. Loop boundaries are implicit in X12: HL segments open the
information source (2000A), information receiver (2000B), subscriber (2000C)
and dependent (2000D) levels, and every EB segment opens an eligibility or
benefit information loop (2110C/2110D) that runs until the next EB, the next
HL or the envelope trailer.

The assembler is a single forward walk with a stack of open levels. Loops are
stored in an arena (a flat list) and refer to each other by index.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional
import logging

from src.services.edi.x12_base import (
    ENVELOPE_TRAILERS,
    DecodeWarning,
    SegmentID,
    StructuralViolationError,
    X12Loop,
    X12Segment,
)

logger = logging.getLogger(__name__)


class LoopKind(str, Enum):
    """Loop levels of a 271 transaction."""

    HEADER = "header"
    INFORMATION_SOURCE = "information_source"  # 2000A
    INFORMATION_RECEIVER = "information_receiver"  # 2000B
    SUBSCRIBER = "subscriber"  # 2000C
    DEPENDENT = "dependent"  # 2000D
    BENEFIT = "benefit"  # 2110C / 2110D


# HL03 - Hierarchical Level Code
HL_LEVEL_CODES = {
    "20": LoopKind.INFORMATION_SOURCE,
    "21": LoopKind.INFORMATION_RECEIVER,
    "22": LoopKind.SUBSCRIBER,
    "23": LoopKind.DEPENDENT,
}

LOOP_DEPTH = {
    LoopKind.HEADER: 0,
    LoopKind.INFORMATION_SOURCE: 1,
    LoopKind.INFORMATION_RECEIVER: 2,
    LoopKind.SUBSCRIBER: 3,
    LoopKind.DEPENDENT: 4,
    LoopKind.BENEFIT: 5,
}

# NM101 entity codes that open a level in feeds without HL segments
IMPLICIT_LEVEL_ENTITIES = {
    "IL": LoopKind.SUBSCRIBER,
    "03": LoopKind.DEPENDENT,
}

PARTY_LOOPS = (LoopKind.SUBSCRIBER, LoopKind.DEPENDENT)


@dataclass
class LoopTree:
    """Arena of assembled loops; index 0 is the header (root) loop."""

    loops: List[X12Loop]
    warnings: List[DecodeWarning] = field(default_factory=list)

    ROOT = 0

    def kind(self, index: int) -> LoopKind:
        return LoopKind(self.loops[index].loop_id)

    def children_of(self, index: int, kind: LoopKind) -> List[int]:
        return [c for c in self.loops[index].children if self.kind(c) is kind]

    def find_all(self, kind: LoopKind) -> List[int]:
        """Indices of every loop of a kind, in document order."""
        return [i for i in range(len(self.loops)) if self.kind(i) is kind]

    def subscribers(self) -> List[int]:
        return self.find_all(LoopKind.SUBSCRIBER)

    def dependents_of(self, index: int) -> List[int]:
        return self.children_of(index, LoopKind.DEPENDENT)

    def benefits_of(self, index: int) -> List[int]:
        return self.children_of(index, LoopKind.BENEFIT)

    def ancestor(self, index: int, kind: LoopKind) -> Optional[int]:
        """Closest enclosing loop of a kind."""
        parent = self.loops[index].parent
        while parent is not None:
            if self.kind(parent) is kind:
                return parent
            parent = self.loops[parent].parent
        return None


class X12271LoopAssembler:
    """
    Groups 271 segments into loops.

    One assembler instance handles one document; create a new one per call.

    Usage:
        tree = X12271LoopAssembler().assemble(X12Tokenizer(content))
        for subscriber in tree.subscribers():
            benefits = tree.benefits_of(subscriber)
    """

    def __init__(self) -> None:
        self._loops: List[X12Loop] = [X12Loop(loop_id=LoopKind.HEADER.value)]
        self._stack: List[int] = [LoopTree.ROOT]
        self._benefit: Optional[int] = None
        self._hl_index: Dict[str, int] = {}
        self._hl_seen = False
        self._warnings: List[DecodeWarning] = []

    def assemble(self, segments: Iterable[X12Segment]) -> LoopTree:
        for segment in segments:
            tag = segment.segment_id

            if tag == SegmentID.HL.value:
                self._hl_seen = True
                self._open_hierarchical_level(segment)
            elif tag == SegmentID.EB.value:
                self._open_benefit(segment)
            elif tag in ENVELOPE_TRAILERS:
                self._benefit = None
                del self._stack[1:]
                self._loops[LoopTree.ROOT].segments.append(segment)
            elif (
                not self._hl_seen
                and tag == SegmentID.NM1.value
                and segment.get_element(0) in IMPLICIT_LEVEL_ENTITIES
            ):
                kind = IMPLICIT_LEVEL_ENTITIES[segment.get_element(0)]
                self._open_level(kind, segment)
            else:
                self._current().segments.append(segment)

        logger.debug(
            f"Assembled {len(self._loops)} loops: "
            f"{sum(1 for l in self._loops if l.loop_id == LoopKind.SUBSCRIBER.value)} subscriber, "
            f"{sum(1 for l in self._loops if l.loop_id == LoopKind.BENEFIT.value)} benefit"
        )
        return LoopTree(loops=self._loops, warnings=self._warnings)

    def _current(self) -> X12Loop:
        if self._benefit is not None:
            return self._loops[self._benefit]
        return self._loops[self._stack[-1]]

    def _kind(self, index: int) -> LoopKind:
        return LoopKind(self._loops[index].loop_id)

    def _new_loop(self, kind: LoopKind, parent: int, segment: X12Segment) -> int:
        index = len(self._loops)
        self._loops.append(X12Loop(loop_id=kind.value, segments=[segment], parent=parent))
        self._loops[parent].children.append(index)
        return index

    def _open_hierarchical_level(self, segment: X12Segment) -> None:
        """HL: close the open benefit loop and start a new level."""
        self._benefit = None
        level_code = segment.get_element(2)
        kind = HL_LEVEL_CODES.get(level_code)

        if kind is None:
            logger.warning(f"Unknown hierarchical level code at position {segment.position}")
            self._warnings.append(
                DecodeWarning(
                    message=f"Unknown hierarchical level code '{level_code}'",
                    position=segment.position,
                    raw_segment=str(segment),
                )
            )
            self._current().segments.append(segment)
            return

        index = self._open_level(kind, segment)
        hl_id = segment.get_value(0)
        if hl_id:
            self._loops[index].hl_id = hl_id
            self._hl_index[hl_id] = index

    def _open_level(self, kind: LoopKind, segment: X12Segment) -> int:
        self._benefit = None
        if kind is LoopKind.DEPENDENT:
            parent = self._dependent_parent(segment)
            while self._stack[-1] != parent:
                self._stack.pop()
        else:
            depth = LOOP_DEPTH[kind]
            while len(self._stack) > 1 and LOOP_DEPTH[self._kind(self._stack[-1])] >= depth:
                self._stack.pop()
            parent = self._stack[-1]

        index = self._new_loop(kind, parent, segment)
        self._stack.append(index)
        return index

    def _dependent_parent(self, segment: X12Segment) -> int:
        """Subscriber loop a dependent nests under: HL02 when it names one, else the open one."""
        parent_id = segment.get_value(1) if segment.segment_id == SegmentID.HL.value else None
        referenced = self._hl_index.get(parent_id) if parent_id else None
        if (
            referenced is not None
            and referenced in self._stack
            and self._kind(referenced) is LoopKind.SUBSCRIBER
        ):
            return referenced

        for index in reversed(self._stack):
            if self._kind(index) is LoopKind.SUBSCRIBER:
                return index

        raise StructuralViolationError(
            "Dependent loop without an enclosing subscriber loop",
            segment_id=segment.segment_id,
            segment_position=segment.position,
            raw_segment=str(segment),
        )

    def _open_benefit(self, segment: X12Segment) -> None:
        """EB: open a benefit loop under the current subscriber or dependent."""
        owner = self._stack[-1]
        if self._kind(owner) not in PARTY_LOOPS:
            raise StructuralViolationError(
                "Benefit loop outside a subscriber or dependent loop",
                segment_id=segment.segment_id,
                segment_position=segment.position,
                raw_segment=str(segment),
            )
        self._benefit = self._new_loop(LoopKind.BENEFIT, owner, segment)

"""Alignment records, CIGAR operations, and the structures derived from them."""

import enum
import re
from typing import NamedTuple, Optional

# Third party modules
import pysam


class CigarOperation(enum.Enum):
    """The kinds of CIGAR operation an alignment can contain.

    Values are the BAM/pysam numeric operation codes. UNKNOWN covers padding,
    the rarely used "back" operation, and anything else a reader hands us.
    """

    MATCH = 0
    INSERTION = 1
    DELETION = 2
    REFERENCE_SKIP = 3
    SOFT_CLIP = 4
    HARD_CLIP = 5
    SEQUENCE_MATCH = 7
    SEQUENCE_MISMATCH = 8
    UNKNOWN = -1

    @classmethod
    def from_code(cls, code: int) -> "CigarOperation":
        """Decode a numeric operation code, as found in pysam cigartuples."""
        try:
            return cls(code)
        except ValueError:
            return cls.UNKNOWN

    @classmethod
    def from_symbol(cls, symbol: str) -> "CigarOperation":
        """Decode a SAM text operation symbol, e.g. "M" or "N"."""
        return _SYMBOL_TO_OPERATION.get(symbol, cls.UNKNOWN)

    @property
    def consumes_reference(self) -> bool:
        return self in (
            CigarOperation.MATCH,
            CigarOperation.DELETION,
            CigarOperation.REFERENCE_SKIP,
            CigarOperation.SEQUENCE_MATCH,
            CigarOperation.SEQUENCE_MISMATCH,
        )


_SYMBOL_TO_OPERATION = {
    "M": CigarOperation.MATCH,
    "I": CigarOperation.INSERTION,
    "D": CigarOperation.DELETION,
    "N": CigarOperation.REFERENCE_SKIP,
    "S": CigarOperation.SOFT_CLIP,
    "H": CigarOperation.HARD_CLIP,
    "=": CigarOperation.SEQUENCE_MATCH,
    "X": CigarOperation.SEQUENCE_MISMATCH,
}

_CIGAR_ELEMENT = re.compile(r"(\d+)(\D)")


def parse_cigar_string(cigar: str) -> list[tuple[CigarOperation, int]]:
    """Parse a SAM CIGAR string into a list of (operation, length) pairs.

    Args
    ----------
    cigar (str): A CIGAR string, e.g. "50M200N30M". "*" or "" give an empty list.

    Returns
    ----------
    list: (CigarOperation, length) pairs, in alignment order.

    Raises
    ----------
    ValueError: If the string is not a well-formed CIGAR.
    """
    if cigar in ("", "*"):
        return []

    operations = []
    consumed = 0
    for match in _CIGAR_ELEMENT.finditer(cigar):
        if match.start() != consumed:
            break
        operations.append(
            (CigarOperation.from_symbol(match.group(2)), int(match.group(1)))
        )
        consumed = match.end()

    if consumed != len(cigar):
        raise ValueError(f"Malformed CIGAR string: {cigar}")
    return operations


class AlignmentRecord(NamedTuple):
    """One decoded alignment, holding only what exon extraction needs."""

    read_name: str
    reference_index: int
    reference_name: Optional[str]
    start_position: int
    is_unmapped: bool
    is_secondary_alignment: bool
    is_reverse_strand: bool
    operations: list[tuple[CigarOperation, int]]
    read_length: int

    @classmethod
    def from_aligned_segment(
        cls, aligned_segment: pysam.AlignedSegment, reference_name: Optional[str]
    ) -> "AlignmentRecord":
        """Decode a pysam AlignedSegment.

        The reference name is passed in by the caller, which resolves
        reference_id against the alignment file header.
        """
        operations = [
            (CigarOperation.from_code(code), length)
            for code, length in (aligned_segment.cigartuples or [])
        ]

        # query_length is 0 when SEQ is "*"; fall back to what the CIGAR implies
        read_length = (
            aligned_segment.query_length or aligned_segment.infer_query_length() or 0
        )

        return cls(
            read_name=aligned_segment.query_name or "",
            reference_index=aligned_segment.reference_id,
            reference_name=reference_name,
            start_position=aligned_segment.reference_start,
            is_unmapped=aligned_segment.is_unmapped,
            is_secondary_alignment=aligned_segment.is_secondary,
            is_reverse_strand=aligned_segment.is_reverse,
            operations=operations,
            read_length=read_length,
        )

    @property
    def strand(self) -> str:
        return "-" if self.is_reverse_strand else "+"


class FilterPolicy(NamedTuple):
    """Which alignments are kept for conversion.

    keep_multimappers : bool
        Keep secondary alignments.
    minimum_alignment_fraction : float
        Fraction of the read (0.0 - 1.0) that must be covered by match operations.
    count_mismatches_as_aligned : bool
        Count X (sequence mismatch) operations toward the aligned bases.
        Off by default: only M and = are counted.
    """

    keep_multimappers: bool = False
    minimum_alignment_fraction: float = 0.80
    count_mismatches_as_aligned: bool = False

    @classmethod
    def from_percent(
        cls,
        keep_multimappers: bool,
        percent_alignment: int,
        count_mismatches_as_aligned: bool = False,
    ) -> "FilterPolicy":
        """Build a policy from an integer percent, as given on the command line.

        Raises
        -------
        ValueError
            If percent_alignment is outside 0 - 100.
        """
        if not 0 <= percent_alignment <= 100:
            raise ValueError(
                f"Percent alignment must be between 0 and 100, got {percent_alignment}"
            )
        return cls(
            keep_multimappers=keep_multimappers,
            minimum_alignment_fraction=percent_alignment / 100,
            count_mismatches_as_aligned=count_mismatches_as_aligned,
        )


class ExonBlock(NamedTuple):
    """A contiguous aligned segment, 1-based inclusive."""

    start: int
    end: int


class TranscriptRecord(NamedTuple):
    """A kept alignment, as a transcript with its exon blocks."""

    reference_name: str
    strand: str
    transcript_id: int
    read_name: str
    exons: list[ExonBlock]

    @property
    def start(self) -> int:
        return self.exons[0].start

    @property
    def end(self) -> int:
        return self.exons[-1].end

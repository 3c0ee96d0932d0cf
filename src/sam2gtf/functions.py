"""Core functions for sam2gtf."""

import enum
import os
import sys
import tempfile
from typing import Iterable, Iterator, Optional

# Third party modules
import pysam

from tqdm import tqdm
from sam2gtf.alignment import (
    AlignmentRecord,
    CigarOperation,
    ExonBlock,
    FilterPolicy,
    TranscriptRecord,
)
from sam2gtf.gtf import format_transcript


class SkipReason(enum.Enum):
    """Why an alignment was not converted."""

    UNMAPPED = "unmapped"
    SECONDARY = "secondary"
    LOW_ALIGNED_FRACTION = "low_aligned_fraction"


class ConversionSummary:
    """Running counts for one conversion."""

    def __init__(self) -> None:
        self.total_records = 0
        self.unmapped = 0
        self.secondary = 0
        self.low_aligned_fraction = 0
        self.transcripts = 0
        self.exons = 0
        self.unknown_operations = 0

    def count_skip(self, reason: SkipReason) -> None:
        attribute = reason.value
        setattr(self, attribute, getattr(self, attribute) + 1)

    def __repr__(self) -> str:
        return (
            f"ConversionSummary(total_records={self.total_records}, "
            f"unmapped={self.unmapped}, secondary={self.secondary}, "
            f"low_aligned_fraction={self.low_aligned_fraction}, "
            f"transcripts={self.transcripts}, exons={self.exons}, "
            f"unknown_operations={self.unknown_operations})"
        )


def aligned_fraction(
    operations: list[tuple[CigarOperation, int]],
    read_length: int,
    count_mismatches_as_aligned: bool = False,
) -> float:
    """Fraction of the read covered by match operations.

    Only M and = count as aligned bases, unless count_mismatches_as_aligned
    is set, in which case X is counted too. A read length of zero gives 0.0.
    """
    aligned_kinds = {CigarOperation.MATCH, CigarOperation.SEQUENCE_MATCH}
    if count_mismatches_as_aligned:
        aligned_kinds.add(CigarOperation.SEQUENCE_MISMATCH)

    if read_length <= 0:
        return 0.0

    aligned_bases = sum(
        length for operation, length in operations if operation in aligned_kinds
    )
    return aligned_bases / read_length


def filter_alignment(
    record: AlignmentRecord, policy: FilterPolicy
) -> Optional[SkipReason]:
    """Apply the filter policy, returning why the record is skipped (or None to keep it).

    Checks run in order: unmapped, secondary, then aligned fraction.
    """
    if record.is_unmapped:
        return SkipReason.UNMAPPED
    if record.is_secondary_alignment and not policy.keep_multimappers:
        return SkipReason.SECONDARY
    fraction = aligned_fraction(
        record.operations,
        record.read_length,
        count_mismatches_as_aligned=policy.count_mismatches_as_aligned,
    )
    if fraction < policy.minimum_alignment_fraction:
        return SkipReason.LOW_ALIGNED_FRACTION
    return None


def extract_exon_blocks(
    read_name: str,
    start_position: int,
    operations: list[tuple[CigarOperation, int]],
) -> list[ExonBlock]:
    """
    Split an alignment into exon blocks at reference skips (N operations).

    Args
    -------
        read_name: Name of the read, used in diagnostics.
        start_position: 0-based leftmost aligned reference position.
        operations: (CigarOperation, length) pairs.

    Returns
    -------
        ExonBlocks in ascending order, 1-based inclusive. There is always at
        least one: the last block is closed unconditionally, so an alignment
        ending on a reference skip yields a trailing block with start == end + 1.
    """
    exons = []
    exon_start = start_position
    exon_end = start_position

    for operation, length in operations:
        if operation is CigarOperation.UNKNOWN:
            tqdm.write(f"Unknown CIGAR operation in read {read_name}", file=sys.stderr)
        elif operation is CigarOperation.REFERENCE_SKIP:
            if exon_end > exon_start:
                exons.append(ExonBlock(exon_start + 1, exon_end))
            exon_start = exon_end + length
            exon_end = exon_start
        elif operation.consumes_reference:
            exon_end += length
        # I, S and H leave the reference position alone

    exons.append(ExonBlock(exon_start + 1, exon_end))
    return exons


def extract_transcript(
    record: AlignmentRecord, transcript_id: int, policy: FilterPolicy
) -> Optional[TranscriptRecord]:
    """Filter one alignment and, if kept, build its transcript record.

    transcript_id should be the 1-based position of the record in the input.
    """
    if filter_alignment(record, policy) is not None:
        return None
    return build_transcript(record, transcript_id)


def build_transcript(record: AlignmentRecord, transcript_id: int) -> TranscriptRecord:
    """Build the transcript record for an alignment that has passed filtering."""
    return TranscriptRecord(
        reference_name=record.reference_name,  # type: ignore
        strand=record.strand,
        transcript_id=transcript_id,
        read_name=record.read_name,
        exons=extract_exon_blocks(
            record.read_name, record.start_position, record.operations
        ),
    )


def iter_transcripts(
    records: Iterable[AlignmentRecord],
    policy: FilterPolicy,
    summary: Optional[ConversionSummary] = None,
) -> Iterator[TranscriptRecord]:
    """Yield a transcript for every record that passes the filter policy.

    Records are numbered from 1 in input order, skipped ones included, and
    that number becomes the transcript id.
    """
    if summary is None:
        summary = ConversionSummary()

    for ordinal, record in enumerate(records, start=1):
        summary.total_records += 1

        skip_reason = filter_alignment(record, policy)
        if skip_reason is not None:
            summary.count_skip(skip_reason)
            continue

        transcript = build_transcript(record, ordinal)

        summary.unknown_operations += sum(
            1
            for operation, _ in record.operations
            if operation is CigarOperation.UNKNOWN
        )
        summary.transcripts += 1
        summary.exons += len(transcript.exons)
        yield transcript


def read_alignment_records(
    input_bam_object: pysam.AlignmentFile, input_path: str
) -> Iterator[AlignmentRecord]:
    """Decode every record of an open alignment file, in file order.

    Raises
    -------
        ValueError: If a record cannot be decoded.
    """
    # until_eof reads linearly and does not need an index
    aligned_segments = input_bam_object.fetch(until_eof=True)
    ordinal = 0
    while True:
        ordinal += 1
        try:
            aligned_segment = next(aligned_segments)
        except StopIteration:
            return
        except (OSError, ValueError) as exc:
            raise ValueError(
                f"Could not decode record {ordinal} in {input_path}: {exc}"
            ) from exc

        reference_name = None
        if aligned_segment.reference_id >= 0:
            reference_name = input_bam_object.get_reference_name(
                aligned_segment.reference_id
            )
        elif not aligned_segment.is_unmapped:
            raise ValueError(
                f"Record {ordinal} ({aligned_segment.query_name}) in {input_path} "
                "is mapped but has no reference sequence"
            )

        yield AlignmentRecord.from_aligned_segment(aligned_segment, reference_name)


def convert_alignments_to_gtf(
    input_path: str,
    output_path: str,
    policy: FilterPolicy,
    verbose: bool = False,
) -> ConversionSummary:
    """
    Convert a SAM/BAM file into a GTF file of transcripts and exons.

    The output is written to a temporary file next to output_path and only
    moved into place once every record has been converted.

    Args
    -------
        input_path: Path to the input .sam or .bam file.
        output_path: Path to the output .gtf file (overwritten if it exists).
        policy: A FilterPolicy object.
        verbose: Show a progress bar.

    Returns
    -------
        A ConversionSummary of the run.

    Raises
    -------
        FileNotFoundError: If the input file is not found.
        ValueError: If the input is not a readable alignment file, or a record
            cannot be decoded.
        OSError: If the output file cannot be written.
    """
    if not os.path.isfile(input_path):
        raise FileNotFoundError(f"Input alignment file not found: {input_path}")

    try:
        input_bam_object = pysam.AlignmentFile(  # type: ignore # pylint: disable=no-member
            input_path, "r", check_sq=False
        )
    except (OSError, ValueError) as exc:
        raise ValueError(f"Could not open alignment file: {input_path}") from exc

    summary = ConversionSummary()

    try:
        temp_fd, temp_output_path = tempfile.mkstemp(
            prefix="." + os.path.basename(output_path) + ".",
            suffix=".tmp",
            dir=os.path.dirname(os.path.abspath(output_path)),
        )
    except OSError:
        input_bam_object.close()
        raise

    try:
        # mkstemp creates the file owner-only
        os.chmod(temp_output_path, 0o644)
        with input_bam_object, open(temp_fd, "w", encoding="utf-8") as out_gtf:
            for transcript in iter_transcripts(
                tqdm(
                    read_alignment_records(input_bam_object, input_path),
                    unit=" reads",
                    disable=not verbose,
                ),
                policy,
                summary,
            ):
                out_gtf.write(format_transcript(transcript))
        os.replace(temp_output_path, output_path)
    except BaseException:
        if os.path.exists(temp_output_path):
            os.remove(temp_output_path)
        raise

    return summary

"""GTF line formatting."""

from sam2gtf.alignment import TranscriptRecord

SOURCE = "SAM2GTF"


def format_feature(
    reference_name: str,
    feature: str,
    start: int,
    end: int,
    strand: str,
    transcript_id: int,
    read_name: str,
) -> str:
    """Format one GTF line (newline terminated).

    Score and frame are always ".". Coordinates are written as given, so they
    should already be 1-based inclusive.
    """
    attributes = f'transcript_id "{transcript_id}"; read_name "{read_name}";'
    return (
        "\t".join(
            [
                reference_name,
                SOURCE,
                feature,
                str(start),
                str(end),
                ".",
                strand,
                ".",
                attributes,
            ]
        )
        + "\n"
    )


def format_transcript(transcript: TranscriptRecord) -> str:
    """Format a transcript line followed by one exon line per block."""
    lines = [
        format_feature(
            transcript.reference_name,
            "transcript",
            transcript.start,
            transcript.end,
            transcript.strand,
            transcript.transcript_id,
            transcript.read_name,
        )
    ]
    for exon in transcript.exons:
        lines.append(
            format_feature(
                transcript.reference_name,
                "exon",
                exon.start,
                exon.end,
                transcript.strand,
                transcript.transcript_id,
                transcript.read_name,
            )
        )
    return "".join(lines)

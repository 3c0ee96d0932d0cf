"""sam2gtf: Convert SAM/BAM alignments directly to GTF transcripts and exons.

sam2gtf turns each aligned read in a SAM or BAM file into a GTF transcript,
splitting the alignment into exon blocks wherever its CIGAR string skips
reference sequence (N operations). It is meant for long-read data such as
PacBio Iso-Seq or Oxford Nanopore, where each aligned read approximates one
transcript.

Main Components:
    AlignmentRecord: A decoded alignment, built from a pysam AlignedSegment.
    FilterPolicy: Which alignments to keep (multimappers, minimum aligned fraction).
    extract_exon_blocks: Splits a CIGAR operation list into exon blocks.
    convert_alignments_to_gtf: Converts a whole SAM/BAM file to GTF.

Example:
    Command-line usage::

        $ sam2gtf -i sample.bam -o sample.gtf --percent_alignment 90

    Python API usage::

        from sam2gtf.alignment import FilterPolicy
        from sam2gtf.functions import convert_alignments_to_gtf

        summary = convert_alignments_to_gtf(
            input_path="/path/to/sample.bam",
            output_path="/path/to/sample.gtf",
            policy=FilterPolicy(keep_multimappers=False, minimum_alignment_fraction=0.8),
        )

Output Format:
    One transcript line per kept read, followed by its exon lines. Coordinates
    are 1-based inclusive, the source column is "SAM2GTF", and attributes are
    transcript_id (the read's 1-based position in the input file, counting
    every record) and read_name.
"""

__version__ = "0.1.0"

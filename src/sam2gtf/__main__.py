# Import modules
import click
import os
import time

from sam2gtf.alignment import FilterPolicy

from sam2gtf.functions import (
    convert_alignments_to_gtf,
)


def validate_output(output_path: str) -> None:
    """Check the output file can be created (or overwritten).

    Raises
    ----------
    ValueError: If the output path is a directory or is not writable.
    """
    if os.path.isdir(output_path):
        raise ValueError(f"Output path is a directory: {output_path}")

    if os.path.exists(output_path):
        if not os.access(output_path, os.W_OK):
            raise ValueError(f"Output file exists and is not writable: {output_path}")
    else:
        output_dir = os.path.dirname(os.path.abspath(output_path))
        if not os.access(output_dir, os.W_OK):
            raise ValueError(f"Output file path is not writable: {output_path}")


@click.command(
    help="Convert SAM/BAM alignments to GTF directly. Useful for investigating long-read alignments such as PacBio Iso-Seq or ONT."
)
@click.version_option()
@click.option(
    "-i",
    "--input",
    "input_path",
    help="Input .sam or .bam file.",
    required=True,
    type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True),
)
@click.option(
    "-o",
    "--output",
    "output_path",
    help="Output .gtf file (overwritten if it exists).",
    required=True,
    type=click.Path(dir_okay=False),
)
@click.option(
    "-k",
    "--keep_multi",
    help="Keep multimappers (secondary alignments).",
    is_flag=True,
)
@click.option(
    "-p",
    "--percent_alignment",
    help="Minimum percent of read bases aligned (M and =) to keep a read (default = 80)",
    default=80,
    type=click.IntRange(0, 99),
)
@click.option(
    "--count-mismatches",
    help="Also count X (sequence mismatch) operations as aligned bases.",
    is_flag=True,
)
@click.option("--verbose", help="Verbose output.", is_flag=True)
def main(
    input_path: str,
    output_path: str,
    keep_multi: bool,
    percent_alignment: int,
    count_mismatches: bool,
    verbose: bool,
) -> None:
    """Sam2Gtf."""
    time_start = time.time()

    policy = FilterPolicy.from_percent(
        keep_multimappers=keep_multi,
        percent_alignment=percent_alignment,
        count_mismatches_as_aligned=count_mismatches,
    )

    if verbose:
        # Print run information
        print(f"Input file: {input_path}")
        print(f"Output file: {output_path}")
        print(f"Keep multimappers: {policy.keep_multimappers}")
        print(f"Minimum percent alignment: {percent_alignment}")
        print(f"Count mismatches as aligned: {policy.count_mismatches_as_aligned}")

    try:
        validate_output(output_path)
        summary = convert_alignments_to_gtf(
            input_path=input_path,
            output_path=output_path,
            policy=policy,
            verbose=verbose,
        )
    except (OSError, ValueError) as e:
        raise click.ClickException(str(e)) from e

    if verbose:
        print(f"\nTotal reads: {summary.total_records:,}")
        print(f"\tUnmapped: {summary.unmapped:,}")
        print(f"\tSecondary (skipped): {summary.secondary:,}")
        print(f"\tBelow percent alignment: {summary.low_aligned_fraction:,}")
        print(f"Transcripts written: {summary.transcripts:,}")
        print(f"Exons written: {summary.exons:,}")
        if summary.unknown_operations:
            print(f"Unknown CIGAR operations: {summary.unknown_operations:,}")
        print(f"\nTime elapsed: {time.time() - time_start:.2f} seconds")
        print("\nRun complete.")


if __name__ == "__main__":
    main(prog_name="sam2gtf")  # pylint: disable=no-value-for-parameter

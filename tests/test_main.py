"""Test cases for the __main__ module."""

import os
import pytest
from click.testing import CliRunner

from sam2gtf import __main__

SAM = (
    "@HD\tVN:1.6\tSO:unsorted\n"
    "@SQ\tSN:chr1\tLN:100000\n"
    "spliced\t0\tchr1\t1001\t60\t50M200N30M\t*\t0\t0\t" + "A" * 80 + "\t*\n"
    "unmapped\t4\t*\t0\t0\t*\t*\t0\t0\t" + "A" * 40 + "\t*\n"
    "multimapper\t256\tchr1\t2001\t60\t20M\t*\t0\t0\t*\t*\n"
    "mostly_clipped\t0\tchr1\t3001\t60\t70M30S\t*\t0\t0\t" + "A" * 100 + "\t*\n"
)


@pytest.fixture
def runner() -> CliRunner:
    """Fixture for invoking command-line interfaces."""
    return CliRunner()


@pytest.fixture
def sam_file(tmp_path) -> str:
    path = tmp_path / "reads.sam"
    path.write_text(SAM)
    return str(path)


def transcript_lines(path) -> list:
    with open(path) as f:
        return [line.split("\t") for line in f if line.split("\t")[2] == "transcript"]


def test_main_succeeds(runner: CliRunner) -> None:
    """It exits with a status code of zero."""
    result = runner.invoke(__main__.main, ["--help"])
    assert result.exit_code == 0


def test_main(runner: CliRunner, sam_file, tmp_path) -> None:
    """Test main() with the default options."""
    output_file = str(tmp_path / "reads.gtf")

    result = runner.invoke(__main__.main, ["-i", sam_file, "-o", output_file])

    assert result.exit_code == 0, f"Failed with: {result.output}"
    transcripts = transcript_lines(output_file)
    assert [(t[3], t[4]) for t in transcripts] == [("1001", "1280")]
    assert 'transcript_id "1"; read_name "spliced";' in transcripts[0][8]


def test_main_keep_multi_and_percent(runner: CliRunner, sam_file, tmp_path) -> None:
    """-k keeps secondary alignments, -p lowers the aligned percent."""
    output_file = str(tmp_path / "reads.gtf")

    result = runner.invoke(
        __main__.main,
        [
            "--input",
            sam_file,
            "--output",
            output_file,
            "--keep_multi",
            "--percent_alignment",
            "60",
        ],
    )

    assert result.exit_code == 0, f"Failed with: {result.output}"
    ids = [t[8].split('"')[1] for t in transcript_lines(output_file)]
    assert ids == ["1", "3", "4"]


def test_main_verbose(runner: CliRunner, sam_file, tmp_path) -> None:
    result = runner.invoke(
        __main__.main,
        ["-i", sam_file, "-o", str(tmp_path / "reads.gtf"), "--verbose"],
    )

    assert result.exit_code == 0, f"Failed with: {result.output}"
    assert "Total reads: 4" in result.output
    assert "Transcripts written: 1" in result.output
    assert "Run complete." in result.output


@pytest.mark.parametrize("percent", ["100", "-1", "eighty"])
def test_main_invalid_percent(runner: CliRunner, sam_file, tmp_path, percent) -> None:
    """Percent alignment must be an integer from 0 to 99."""
    result = runner.invoke(
        __main__.main,
        ["-i", sam_file, "-o", str(tmp_path / "reads.gtf"), "-p", percent],
    )
    assert result.exit_code == 2


def test_main_missing_input(runner: CliRunner, tmp_path) -> None:
    result = runner.invoke(
        __main__.main,
        ["-i", str(tmp_path / "missing.bam"), "-o", str(tmp_path / "reads.gtf")],
    )
    assert result.exit_code == 2
    assert not os.path.exists(tmp_path / "reads.gtf")


def test_main_corrupt_input(runner: CliRunner, tmp_path) -> None:
    """A record that cannot be decoded stops the run with an error."""
    bam_file = tmp_path / "reads.bam"
    # BGZF magic followed by garbage
    bam_file.write_bytes(b"\x1f\x8b\x08\x04" + b"\x00" * 60)

    result = runner.invoke(
        __main__.main, ["-i", str(bam_file), "-o", str(tmp_path / "reads.gtf")]
    )

    assert result.exit_code == 1
    assert "Error" in result.output
    assert not os.path.exists(tmp_path / "reads.gtf")


def test_validate_output(tmp_path) -> None:
    """Test validate_output."""

    __main__.validate_output(str(tmp_path / "new.gtf"))

    existing = tmp_path / "existing.gtf"
    existing.touch()
    __main__.validate_output(str(existing))


def test_validate_output_directory(tmp_path) -> None:
    """Test validate_output raises ValueError for a directory."""
    with pytest.raises(ValueError, match="is a directory"):
        __main__.validate_output(str(tmp_path))


def test_validate_output_unwritable_dir(tmp_path) -> None:
    """Test validate_output raises ValueError for a missing directory."""
    with pytest.raises(ValueError, match="not writable"):
        __main__.validate_output(str(tmp_path / "no_such_dir" / "out.gtf"))

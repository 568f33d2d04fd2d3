# /// script
# requires-python = ">=3.10"
# dependencies = [
#     "pysam",
#     "pytest",
# ]
# ///
"""
Pytest fixtures and configuration for mt_lintocirc testing.

This module provides shared fixtures for testing mt_lintocirc.py. It includes a
plain-Python stand-in for pysam.AlignedSegment, and helpers for writing small
SAM files aligned against a doubled reference.
"""

import sys
import tempfile
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pysam
import pytest

# Add bin directory to Python path so we can import the modules under test
BIN_DIR = Path(__file__).parent.parent / "bin"
sys.path.insert(0, str(BIN_DIR))

# Single-copy length used throughout the tests
REF_LEN = 1000

# 20S30M5D5N90M10S: 150 read bases, 130 reference bases
SPLIT_CIGAR = [(4, 20), (0, 30), (2, 5), (3, 5), (0, 90), (4, 10)]

# SAM POS 910 (0-based 909): the aligned part crosses the join 90 reference bases in
SPLIT_START = REF_LEN - 91

# ACGT repeats with an 'N' at read offset 100, where the split scenario cuts
SPLIT_SEQUENCE = "ACGT" * 25 + "N" + "ACGT" * 12 + "A"

# Phred+33 text qualities; '!' sits at read offset 100
SPLIT_QUALITY_TEXT = (
    "0123456789:;<=>?@ABCDEFGHI" * 3
    + "0123456789:;<=>?@ABCDE"
    + "!FGHI"
    + "0123456789:;<=>?@ABCDEFGHI"
    + "0123456789:;<=>?@AB"
)
SPLIT_QUALITIES = [ord(c) - 33 for c in SPLIT_QUALITY_TEXT]


class MockAlignedSegment:
    """Plain-Python stand-in for AlignedSegment, used by the unit tests."""

    def __init__(
        self,
        query_name: str = "test_read",
        query_sequence: str | None = "ATCGATCGATCG",
        query_qualities: list[int] | None = None,
        cigartuples: list[tuple[int, int]] | None = None,
        reference_start: int | None = 0,
        reference_id: int = 0,
        next_reference_id: int = -1,
        mapping_quality: int = 60,
        flag: int = 0,
        is_unmapped: bool = False,
        is_secondary: bool = False,
        tags: dict[str, Any] | None = None,
    ) -> None:
        self.query_name = query_name
        self.query_sequence = query_sequence
        self.query_qualities = query_qualities or (
            [30] * len(query_sequence) if query_sequence else None
        )
        self.cigartuples = cigartuples
        self.reference_start = reference_start
        self.reference_id = reference_id
        self.next_reference_id = next_reference_id
        self.mapping_quality = mapping_quality
        self.flag = flag
        self.is_unmapped = is_unmapped
        self.is_secondary = is_secondary
        self.tags = tags or {"RG": "rg0", "NH": 1}


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def split_read() -> MockAlignedSegment:
    """The read that crosses the join of a 1000 bp doubled reference."""
    return MockAlignedSegment(
        query_name="Read1",
        query_sequence=SPLIT_SEQUENCE,
        query_qualities=list(SPLIT_QUALITIES),
        cigartuples=list(SPLIT_CIGAR),
        reference_start=SPLIT_START,
    )


@pytest.fixture
def secondary_split_read() -> MockAlignedSegment:
    """A secondary alignment crossing the join with no stored payload."""
    return MockAlignedSegment(
        query_name="Read2",
        query_sequence=None,
        query_qualities=None,
        cigartuples=list(SPLIT_CIGAR),
        reference_start=SPLIT_START,
        flag=256,
        is_secondary=True,
    )


def create_sam_header(
    references: list[tuple[str, int]] | None = None,
) -> dict[str, Any]:
    """Create a minimal SAM header with a doubled mitochondrial reference."""
    if references is None:
        references = [("chr1", 5000), ("chrM_doubled", 2 * REF_LEN), ("chr2", 3000)]
    return {
        "HD": {"VN": "1.6", "SO": "unsorted"},
        "SQ": [{"SN": name, "LN": length} for name, length in references],
        "PG": [{"ID": "test", "PN": "mt_lintocirc_test", "VN": "0.1.0"}],
    }


def make_pysam_read(
    header: pysam.AlignmentHeader,
    qname: str,
    reference_name: str,
    reference_start: int,
    cigar: list[tuple[int, int]],
    sequence: str | None,
    qualities: list[int] | None = None,
    secondary: bool = False,
) -> pysam.AlignedSegment:
    """Build a pysam read the way the writer would receive it."""
    read = pysam.AlignedSegment(header)
    read.query_name = qname
    read.flag = 256 if secondary else 0
    read.reference_id = header.get_tid(reference_name)
    read.reference_start = reference_start
    read.mapping_quality = 60
    read.cigartuples = cigar
    read.query_sequence = sequence
    if sequence:
        read.query_qualities = qualities or [30] * len(sequence)
    read.set_tag("RG", "rg0")
    return read


@pytest.fixture
def doubled_sam_file(temp_dir: Path) -> Path:
    """
    A SAM file on a doubled 1000 bp mitochondrial reference holding one read of
    each kind: inside the first copy, in the second copy, across the join,
    a secondary across the join, an unmapped read, and a nuclear read.
    """
    sam_path = temp_dir / "doubled.sam"
    header_dict = create_sam_header()

    with pysam.AlignmentFile(str(sam_path), "w", header=header_dict) as sam_file:
        header = sam_file.header
        reads = [
            make_pysam_read(header, "inside", "chrM_doubled", 100, [(0, 50)], "A" * 50),
            make_pysam_read(
                header, "second_copy", "chrM_doubled", 1200, [(0, 40)], "C" * 40
            ),
            make_pysam_read(
                header,
                "across",
                "chrM_doubled",
                SPLIT_START,
                list(SPLIT_CIGAR),
                SPLIT_SEQUENCE,
                list(SPLIT_QUALITIES),
            ),
            make_pysam_read(
                header,
                "across_secondary",
                "chrM_doubled",
                SPLIT_START,
                list(SPLIT_CIGAR),
                None,
                secondary=True,
            ),
            make_pysam_read(header, "nuclear", "chr2", 500, [(0, 30)], "G" * 30),
        ]
        for read in reads:
            sam_file.write(read)

        unmapped = pysam.AlignedSegment(header)
        unmapped.query_name = "unmapped"
        unmapped.flag = 4
        unmapped.reference_id = -1
        unmapped.reference_start = -1
        unmapped.query_sequence = "T" * 20
        unmapped.query_qualities = [20] * 20
        sam_file.write(unmapped)

    return sam_path


@pytest.fixture(autouse=True)
def configure_logging_for_tests() -> None:
    """Configure logging for tests to reduce noise."""
    from loguru import logger

    logger.remove()
    logger.add(sys.stderr, level="WARNING")

#!/usr/bin/env python3
# /// script
# requires-python = ">=3.10"
# dependencies = [
#     "loguru",
#     "pysam",
# ]
# ///
"""
Convert alignments made against a doubled circular reference back to a single
linear copy of that reference.

Circular genomes such as mtDNA are often linearized for alignment by
concatenating the reference with itself. Reads that align entirely in the
second copy are shifted back by one reference length; reads that cross the
join between the two copies are cut at the join into a left record (ending at
the last base of the reference) and a right record (starting at its first
base, named with a ``_right`` suffix).
"""

from __future__ import annotations

import argparse
import copy
import sys
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any, NamedTuple, Protocol

import pysam
from loguru import logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

__version__ = "0.1.0"

# ------------------------------- CONSTANTS -------------------------------- #

# CIGAR op codes
# 0:M, 1:I, 2:D, 3:N, 4:S, 5:H, 6:P, 7:=, 8:X
REF_CONSUME = {0, 2, 3, 7, 8}
QRY_CONSUME = {0, 1, 4, 7, 8}

# Revised Cambridge Reference Sequence (rCRS) length
MT_REF_LEN: int = 16569
MT_CHR: str = "chrM"

# Appended to the read name of the half re-anchored at the reference start
RIGHT_SUFFIX: str = "_right"

# Emit a progress debug line after processing this many records
DEBUG_EVERY: int = 100_000


# -------------------------------- ERRORS ----------------------------------- #


class CigarParseError(ValueError):
    """A CIGAR run carries an operation code outside M,I,D,N,S,H,P,=,X."""


class InvariantViolationError(AssertionError):
    """
    Raised when a rebuilt record would not be internally consistent (CIGAR read
    length vs. sequence/quality length, or an empty payload on a primary read).
    Raised explicitly rather than via ``assert`` so it survives ``python -O``.
    """


# ------------------------------- DATA TYPES -------------------------------- #


class OpKind(IntEnum):
    """CIGAR operation kinds, valued by their BAM op codes."""

    MATCH = 0
    INSERTION = 1
    DELETION = 2
    REF_SKIP = 3
    SOFT_CLIP = 4
    HARD_CLIP = 5
    PADDING = 6
    SEQ_MATCH = 7
    SEQ_MISMATCH = 8

    @property
    def consumes_reference(self) -> bool:
        return self.value in REF_CONSUME

    @property
    def consumes_read(self) -> bool:
        return self.value in QRY_CONSUME

    @property
    def symbol(self) -> str:
        return "MIDNSHP=X"[self.value]


class CigarOp(NamedTuple):
    """One CIGAR run: (operation kind, run length)."""

    op: OpKind
    length: int

    @staticmethod
    def from_tuple(t: tuple[int, int]) -> CigarOp:
        """Convert a raw (op, len) tuple to CigarOp, validating the op code."""
        op, ln = t
        try:
            kind = OpKind(op)
        except ValueError:
            msg = f"Invalid CIGAR operation code {op}: must be 0-8 (M,I,D,N,S,H,P,=,X)"
            raise CigarParseError(msg) from None
        if ln < 0:
            msg = f"Invalid CIGAR run length {ln} for operation {kind.symbol}"
            raise CigarParseError(msg)
        return CigarOp(kind, ln)

    @staticmethod
    def to_tuple(run: CigarOp) -> tuple[int, int]:
        """Convert a CigarOp back to a raw (op, len) tuple."""
        return (int(run.op), run.length)


class Cigar(list[CigarOp]):
    """A list of CigarOp with helpers for conversion and length accounting."""

    @classmethod
    def from_pysam(cls, cig_raw: list[tuple[int, int]] | None) -> Cigar | None:
        """
        Convert pysam's list[(op, len)] to a Cigar. Returns None if input is None.
        """
        if cig_raw is None:
            return None
        return cls(CigarOp.from_tuple(t) for t in cig_raw)

    def to_pysam(self) -> list[tuple[int, int]]:
        """Convert this Cigar back to list[(op, len)] for pysam."""
        return [CigarOp.to_tuple(run) for run in self]

    def read_length(self) -> int:
        """Number of read bases the CIGAR accounts for."""
        return sum(run.length for run in self if run.op.consumes_read)

    def reference_length(self) -> int:
        """Number of reference bases the CIGAR spans."""
        return sum(run.length for run in self if run.op.consumes_reference)

    def to_string(self) -> str:
        return "".join(f"{run.length}{run.op.symbol}" for run in self) or "*"


class AlignmentLike(Protocol):
    """
    The accessors the conversion needs from an alignment record. pysam's
    AlignedSegment satisfies it; so does any object carrying these attributes.
    """

    query_name: str | None
    reference_id: int
    next_reference_id: int
    reference_start: int | None
    is_unmapped: bool
    is_secondary: bool
    cigartuples: list[tuple[int, int]] | None
    query_sequence: str | None
    query_qualities: Any


@dataclass(frozen=True)
class ConversionParams:
    """Fixed parameters of a conversion run."""

    refname: str
    targetref: str = MT_CHR
    reflen: int = MT_REF_LEN

    def __post_init__(self) -> None:
        if not self.refname:
            msg = "Name of the doubled reference must be non-empty"
            raise ValueError(msg)
        if not self.targetref:
            msg = "Target reference name must be non-empty"
            raise ValueError(msg)
        if self.reflen <= 0:
            msg = f"Reference length must be positive, got {self.reflen}"
            raise ValueError(msg)


# Per-record outcomes. Transient: produced and consumed for one input record.


@dataclass(frozen=True)
class Unchanged:
    """Record passes through as-is."""


@dataclass(frozen=True)
class Shifted:
    """Record lies wholly in the second copy; move it back by one copy."""

    new_start: int


@dataclass(frozen=True)
class Split:
    """Record crosses the join; cut the payload at read offset `cut`."""

    cut: int
    left_cigar: Cigar
    right_cigar: Cigar


Outcome = Unchanged | Shifted | Split


@dataclass
class ConversionStats:
    """Running counts for one conversion run."""

    unchanged: int = 0
    shifted: int = 0
    split: int = 0
    unplaced: int = 0
    other_reference: int = 0
    written: int = 0

    @property
    def processed(self) -> int:
        return (
            self.unchanged
            + self.shifted
            + self.split
            + self.unplaced
            + self.other_reference
        )


@dataclass(frozen=True)
class HeaderAdjustment:
    """
    Result of rewriting the reference dictionary.

    `tid_map` maps input reference ids to output reference ids for every id
    whose index changed; ids not present map to themselves. `target_tid` is
    the output id of the single-copy reference, and `doubled_tid` the input id
    of the doubled one (None when the input header lacks it).
    """

    header: dict[str, Any]
    tid_map: dict[int, int]
    doubled_tid: int | None
    target_tid: int

    def remap(self, tid: int) -> int:
        if tid < 0:
            return tid
        return self.tid_map.get(tid, tid)


# ----------------------------- LOGGING SETUP ------------------------------- #


def configure_logging(verbose: int, quiet: int) -> None:
    """
    Base at SUCCESS (0). Positive → louder (more verbose), negative → quieter.
    Map:
      +3.. = TRACE
      +2   = DEBUG
      +1   = INFO
       0   = SUCCESS
      -1   = WARNING
      -2   = ERROR
      <=-3 = CRITICAL
    """
    logger.remove()
    delta = verbose - quiet
    match delta:
        case d if d >= 3:  # noqa: PLR2004
            level_str = "TRACE"
        case 2:
            level_str = "DEBUG"
        case 1:
            level_str = "INFO"
        case 0:
            level_str = "SUCCESS"
        case -1:
            level_str = "WARNING"
        case -2:
            level_str = "ERROR"
        case d if d <= -3:  # noqa: PLR2004
            level_str = "CRITICAL"
    logger.add(sys.stderr, level=level_str)
    logger.debug(f"Logger configured at level: {level_str}")


# --------------------------- BOUNDARY CLASSIFIER ---------------------------- #


def _find_cut(cig: Cigar, start: int, reflen: int) -> Outcome:
    """
    Walk `cig` from 1-based reference position `start` and locate the first
    reference-consuming run that reaches past `reflen`.

    The straddling run is divided into a left part ending at the boundary and
    a right part beginning at it. A zero-length part is dropped. Runs before
    the straddling one go left, runs after it go right.
    """
    ref_pos = start
    read_pos = 0
    left = Cigar()

    for i, run in enumerate(cig):
        if run.op.consumes_reference and ref_pos + run.length > reflen:
            left_len = reflen - ref_pos
            right_len = run.length - left_len
            assert 0 <= left_len < run.length, (
                f"Boundary arithmetic error: ref_pos={ref_pos}, run={run}, reflen={reflen}"
            )

            if left_len > 0:
                left.append(CigarOp(run.op, left_len))
            if run.op.consumes_read:
                read_pos += left_len

            right = Cigar()
            if right_len > 0:
                right.append(CigarOp(run.op, right_len))
            right.extend(cig[i + 1 :])

            if not right:
                return Unchanged()
            return Split(cut=read_pos, left_cigar=left, right_cigar=right)

        if run.op.consumes_reference:
            ref_pos += run.length
        if run.op.consumes_read:
            read_pos += run.length
        left.append(run)

    # Ends at or before the boundary
    return Unchanged()


def has_alignment_start(aln: AlignmentLike) -> bool:
    """True when the record is placed: mapped, with a start and a CIGAR."""
    start = aln.reference_start
    return not (
        aln.is_unmapped or start is None or start < 0 or aln.cigartuples is None
    )


def classify_alignment(aln: AlignmentLike, reflen: int) -> Outcome:
    """
    Decide what a record on the doubled reference needs.

    - no alignment start or CIGAR: Unchanged (logged, not an error)
    - starts in the second copy: Shifted back by `reflen`
    - crosses the join: Split at the read offset of the join
    - otherwise: Unchanged
    """
    if not has_alignment_start(aln):
        logger.warning(
            f"Record '{aln.query_name}' has no alignment start; passing through unchanged.",
        )
        return Unchanged()

    # Boundary arithmetic runs on the 1-based SAM POS
    pos = aln.reference_start + 1
    if pos >= reflen:
        new_start = aln.reference_start - reflen
        if new_start < 0:
            # POS == reflen would shift to POS 0; pin it to the first base.
            logger.warning(
                f"Read '{aln.query_name}' starts at POS {pos} == reference length; "
                "shifted to POS 1.",
            )
            new_start = 0
        return Shifted(new_start=new_start)

    cig = Cigar.from_pysam(aln.cigartuples)
    return _find_cut(cig, pos, reflen)


# --------------------------- PAYLOAD PARTITIONER ---------------------------- #


def partition_payload(
    sequence: str | None,
    qualities: Sequence[int] | None,
    cut: int,
    is_secondary: bool,  # noqa: FBT001
    name: str | None = None,
) -> tuple[tuple[str | None, Any], tuple[str | None, Any]]:
    """
    Split the sequence and qualities at read offset `cut`.

    Returns ((left_seq, left_qual), (right_seq, right_qual)). Secondary
    alignments may carry no payload at all, in which case both halves are
    empty. A sequence stored without qualities (SAM QUAL '*') keeps None
    qualities on both halves.
    """
    assert cut >= 0, f"Cut point must be non-negative, got {cut}"

    has_seq = bool(sequence)
    has_qual = qualities is not None and len(qualities) > 0

    if not has_seq and has_qual:
        msg = (
            f"Record '{name}' has quality scores ({len(qualities)}) but no sequence"
        )
        raise InvariantViolationError(msg)

    if not has_seq:
        if not is_secondary:
            msg = f"Record '{name}' has an empty sequence but is not flagged secondary"
            raise InvariantViolationError(msg)
        return (None, None), (None, None)

    if cut > len(sequence):
        msg = (
            f"Cut point {cut} lies beyond the sequence of '{name}' (length {len(sequence)})"
        )
        raise InvariantViolationError(msg)

    if not has_qual:
        return (sequence[:cut], None), (sequence[cut:], None)

    if len(qualities) != len(sequence):
        msg = (
            f"Sequence/quality length mismatch for '{name}': "
            f"seq={len(sequence)}, qual={len(qualities)}"
        )
        raise InvariantViolationError(msg)

    return (sequence[:cut], qualities[:cut]), (sequence[cut:], qualities[cut:])


# ----------------------------- RECORD REBUILDER ----------------------------- #


def check_payload_consistency(aln: AlignmentLike) -> None:
    """
    Verify CIGAR read length == sequence length == quality length.
    A secondary alignment may omit the payload entirely.
    """
    cig = Cigar.from_pysam(aln.cigartuples) or Cigar()
    seq_len = len(aln.query_sequence) if aln.query_sequence else 0
    qual = aln.query_qualities
    qual_len = len(qual) if qual is not None else 0

    if seq_len == 0 and qual_len > 0:
        msg = f"Record '{aln.query_name}' has quality scores but no sequence"
        raise InvariantViolationError(msg)
    if seq_len == 0 and aln.is_secondary:
        return

    if cig.read_length() != seq_len:
        msg = (
            f"CIGAR/sequence mismatch for '{aln.query_name}': "
            f"cigar={cig.to_string()} read_len={cig.read_length()}, seq_len={seq_len}, "
            f"start={aln.reference_start}"
        )
        raise InvariantViolationError(msg)
    if qual_len and qual_len != seq_len:
        msg = (
            f"Quality/sequence length mismatch for '{aln.query_name}': "
            f"qual={qual_len}, seq={seq_len}"
        )
        raise InvariantViolationError(msg)


def _with_payload(
    aln: AlignmentLike,
    start: int,
    cig: Cigar,
    seq: str | None,
    qual: Any,
) -> AlignmentLike:
    """Copy `aln` and replace its start, CIGAR, and payload."""
    out = copy.copy(aln)
    out.reference_start = start
    # Order matters for pysam: assigning the sequence resets the qualities.
    out.cigartuples = cig.to_pysam()
    out.query_sequence = seq
    out.query_qualities = qual
    return out


def rebuild_split(
    aln: AlignmentLike,
    split: Split,
) -> tuple[AlignmentLike, AlignmentLike]:
    """
    Build the left and right records for a Split outcome.

    The left record keeps the original name and start. The right record is
    re-anchored at the first reference base and renamed with RIGHT_SUFFIX so
    the two placements are not mistaken for one. Every other field, tags
    included, is copied from the input.
    """
    (left_seq, left_qual), (right_seq, right_qual) = partition_payload(
        aln.query_sequence,
        aln.query_qualities,
        split.cut,
        aln.is_secondary,
        aln.query_name,
    )

    left = _with_payload(aln, aln.reference_start, split.left_cigar, left_seq, left_qual)
    right = _with_payload(aln, 0, split.right_cigar, right_seq, right_qual)
    right.query_name = f"{aln.query_name}{RIGHT_SUFFIX}"

    check_payload_consistency(left)
    check_payload_consistency(right)

    logger.debug(
        f"Split '{aln.query_name}' at read offset {split.cut}: "
        f"left={split.left_cigar.to_string()}@{left.reference_start}, "
        f"right={split.right_cigar.to_string()}@{right.reference_start}",
    )
    return left, right


def rebuild_shifted(aln: AlignmentLike, shifted: Shifted, reflen: int) -> AlignmentLike:
    """Copy `aln` with its start moved back into the first reference copy."""
    out = copy.copy(aln)
    out.reference_start = shifted.new_start

    cig = Cigar.from_pysam(aln.cigartuples) or Cigar()
    end = shifted.new_start + cig.reference_length()
    if end > reflen:
        # More than one full copy spanned; only a single shift is applied.
        logger.warning(
            f"Read '{aln.query_name}' still ends past the reference after shifting "
            f"({shifted.new_start} + {cig.reference_length()} > {reflen}); left as is.",
        )
    else:
        logger.debug(
            f"Read '{aln.query_name}' starts beyond the reference at {aln.reference_start}; "
            f"shifted to {shifted.new_start}.",
        )
    return out


def convert_alignment(
    aln: AlignmentLike,
    reflen: int,
) -> tuple[Outcome, tuple[AlignmentLike, ...]]:
    """
    Convert one record on the doubled reference.

    Returns the outcome and the records to emit: the input object itself for
    Unchanged, one shifted copy for Shifted, or the left and right halves for
    Split.
    """
    outcome = classify_alignment(aln, reflen)
    match outcome:
        case Unchanged():
            return outcome, (aln,)
        case Shifted():
            return outcome, (rebuild_shifted(aln, outcome, reflen),)
        case Split():
            return outcome, rebuild_split(aln, outcome)


# ----------------------------- HEADER ADJUSTER ------------------------------ #


def adjust_header(
    header: dict[str, Any],
    refname: str,
    targetref: str,
    reflen: int,
) -> HeaderAdjustment:
    """
    Replace the doubled reference entry in a pysam header dict with a single
    copy named `targetref` of length `reflen`. The input dict is not modified.

    The entry is renamed in place where possible so reference ids stay put.
    When `targetref` already names a different entry, that entry is resized,
    the doubled entry is removed, and ids are remapped accordingly.
    """
    new_header = copy.deepcopy(header)
    sq: list[dict[str, Any]] = new_header.setdefault("SQ", [])
    names = [entry["SN"] for entry in sq]

    doubled_tid = names.index(refname) if refname in names else None
    target_tid = names.index(targetref) if targetref in names else None

    if doubled_tid is None:
        logger.warning(
            f"Reference '{refname}' not found in header; no alignments will be converted.",
        )
        if target_tid is None:
            sq.append({"SN": targetref, "LN": reflen})
            target_tid = len(sq) - 1
        else:
            sq[target_tid]["LN"] = reflen
        return HeaderAdjustment(new_header, {}, None, target_tid)

    if target_tid is None or target_tid == doubled_tid:
        entry = sq[doubled_tid]
        old_len = entry.get("LN")
        entry.pop("M5", None)
        entry["SN"] = targetref
        entry["LN"] = reflen
        logger.info(
            f"Reference '{refname}' (LN={old_len}) replaced by '{targetref}' (LN={reflen}).",
        )
        return HeaderAdjustment(new_header, {}, doubled_tid, doubled_tid)

    # Target already present elsewhere: fold the doubled entry into it.
    sq[target_tid]["LN"] = reflen
    sq[target_tid].pop("M5", None)
    del sq[doubled_tid]

    tid_map: dict[int, int] = {}
    for tid in range(doubled_tid + 1, len(names)):
        tid_map[tid] = tid - 1
    new_target_tid = tid_map.get(target_tid, target_tid)
    tid_map[doubled_tid] = new_target_tid

    logger.info(
        f"Reference '{refname}' removed; alignments moved to existing '{targetref}' "
        f"(LN={reflen}).",
    )
    return HeaderAdjustment(new_header, tid_map, doubled_tid, new_target_tid)


# ----------------------------- I/O UTILITIES ------------------------------- #


def _io_mode_from_ext(path: str, write: bool, fmt: str | None = None) -> str:  # noqa: FBT001
    """
    Determine pysam open mode from an explicit format or the filename extension.
    '-' reads with format auto-detection and writes SAM unless `fmt` is given.
    """
    suffixes = {"sam": "", "bam": "b", "cram": "c"}
    if fmt is None:
        lower = path.lower()
        if path == "-":
            fmt = "sam"
        elif lower.endswith(".sam"):
            fmt = "sam"
        elif lower.endswith(".bam"):
            fmt = "bam"
        elif lower.endswith(".cram"):
            fmt = "cram"
        else:
            msg = "Output/input must end with .sam, .bam, or .cram"
            logger.error(msg)
            raise ValueError(msg)
    if fmt not in suffixes:
        msg = f"Unknown alignment format '{fmt}': expected sam, bam, or cram"
        raise ValueError(msg)
    if not write and path == "-":
        return "r"
    return ("w" if write else "r") + suffixes[fmt]


def open_alignment(
    path: str,
    write: bool,  # noqa: FBT001
    header: dict[str, Any] | None = None,
    reference: str | None = None,
    fmt: str | None = None,
) -> pysam.AlignmentFile:
    """
    Open SAM/BAM/CRAM with the correct mode. For CRAM, pass a reference FASTA.
    Writing requires the (already adjusted) header dict.
    """
    assert isinstance(path, str) and len(path) > 0, (  # noqa: PT018
        f"Path must be non-empty string, got: {path!r}"
    )

    mode = _io_mode_from_ext(path, write, fmt)

    kwargs = {}
    is_cram = mode.endswith("c")
    if is_cram and reference is None:
        logger.warning(
            f"Opening CRAM without explicit reference: {path}. "
            "Decoding may fail unless the reference is resolvable.",
        )
    if is_cram and reference is not None:
        kwargs["reference_filename"] = reference

    action = "write" if write else "read"
    logger.debug(f"Opening for {action}: {path} (mode={mode})")
    if write:
        if header is None:
            msg = f"Writing to '{path}' requires a header"
            raise ValueError(msg)
        return pysam.AlignmentFile(path, mode, header=header, **kwargs)
    return pysam.AlignmentFile(path, mode, **kwargs)


# ------------------------------ CORE LOGIC --------------------------------- #


def process_stream(
    records: Iterable[AlignmentLike],
    outp: pysam.AlignmentFile,
    adjustment: HeaderAdjustment,
    reflen: int,
) -> ConversionStats:
    """
    Stream records to `outp`, converting those on the doubled reference.

    Reference ids (and mate reference ids) are remapped to the adjusted
    header. Records on other references pass through. One or two records are
    written per input, in input order.
    """
    stats = ConversionStats()

    for n, aln in enumerate(records, start=1):
        if n % DEBUG_EVERY == 0:
            logger.debug(
                f"Progress: processed={n}, split={stats.split}, shifted={stats.shifted}, "
                f"written={stats.written}",
            )

        on_doubled = (
            adjustment.doubled_tid is not None
            and aln.reference_id == adjustment.doubled_tid
        )
        if adjustment.tid_map:
            aln.reference_id = adjustment.remap(aln.reference_id)
            aln.next_reference_id = adjustment.remap(aln.next_reference_id)

        if not on_doubled:
            if aln.is_unmapped:
                stats.unplaced += 1
            else:
                stats.other_reference += 1
            outp.write(aln)
            stats.written += 1
            continue

        outcome, out_records = convert_alignment(aln, reflen)
        match outcome:
            case Unchanged() if not has_alignment_start(aln):
                stats.unplaced += 1
            case Unchanged():
                stats.unchanged += 1
            case Shifted():
                stats.shifted += 1
            case Split():
                stats.split += 1

        for rec in out_records:
            outp.write(rec)
            stats.written += 1

    logger.info(
        f"Process totals: processed={stats.processed}, unchanged={stats.unchanged}, "
        f"shifted={stats.shifted}, split={stats.split}, unplaced={stats.unplaced}, "
        f"other_reference={stats.other_reference}, written={stats.written}",
    )
    return stats


def run_conversion(  # noqa: PLR0913
    in_path: str,
    out_path: str,
    params: ConversionParams,
    out_format: str | None = None,
    reference: str | None = None,
    force: bool = False,  # noqa: FBT001, FBT002
) -> ConversionStats:
    """Open input/output, rewrite the header, and convert every record."""
    if out_path != "-" and Path(out_path).exists() and not force:
        msg = f"Output file '{out_path}' already exists (use --force to overwrite)"
        raise FileExistsError(msg)

    input_alignment = open_alignment(in_path, write=False, reference=reference)
    try:
        adjustment = adjust_header(
            input_alignment.header.to_dict(),
            params.refname,
            params.targetref,
            params.reflen,
        )
        output_alignment = open_alignment(
            out_path,
            write=True,
            header=adjustment.header,
            reference=reference,
            fmt=out_format,
        )
        try:
            stats = process_stream(
                input_alignment,
                output_alignment,
                adjustment,
                params.reflen,
            )
        finally:
            output_alignment.close()
    finally:
        input_alignment.close()

    return stats


# --------------------------------- CLI ------------------------------------- #


def build_parser() -> argparse.ArgumentParser:
    """
    CLI:
      -v / -vv / -vvv : increase verbosity (INFO -> DEBUG -> TRACE)
      -q / -qq / -qqq : decrease verbosity (WARNING -> ERROR -> CRITICAL)
    (Mutually exclusive.)
    """
    p = argparse.ArgumentParser(
        prog="mt-lintocirc",
        description=(
            "Convert SAM/BAM/CRAM alignments made against a doubled circular reference\n"
            "(e.g. mtDNA concatenated with itself) back to a single linear copy.\n"
            "Reads in the second copy are shifted back; reads crossing the join are\n"
            f"split into two records, the second named with a '{RIGHT_SUFFIX}' suffix."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    # I/O
    p.add_argument(
        "input",
        help="Input SAM/BAM/CRAM ('-' for standard input)",
    )
    p.add_argument(
        "-o",
        "--output",
        default="-",
        help="Output SAM/BAM/CRAM (default: standard output, SAM)",
    )
    p.add_argument(
        "-O",
        "--output-format",
        choices=["sam", "bam", "cram"],
        default=None,
        help="Output format (default: inferred from the output extension)",
    )
    p.add_argument(
        "--cram-reference",
        default=None,
        help="Reference FASTA (required/recommended for CRAM read/write)",
    )
    p.add_argument(
        "-f",
        "--force",
        action="store_true",
        help="Overwrite the output file if it already exists",
    )

    # Reference
    ref_group = p.add_argument_group("Reference Configuration")
    ref_group.add_argument(
        "-r",
        "--ref",
        dest="refname",
        required=True,
        help="Name of the doubled reference in the input header",
    )
    ref_group.add_argument(
        "-t",
        "--targetref",
        default=MT_CHR,
        help=f"Name of the single-copy reference in the output (default: {MT_CHR})",
    )
    ref_group.add_argument(
        "-l",
        "--reflen",
        type=int,
        default=MT_REF_LEN,
        help=f"Length of one copy of the reference (default: {MT_REF_LEN})",
    )

    # Verbosity: -v/-vv/-vvv or -q/-qq/-qqq (mutually exclusive)
    g = p.add_mutually_exclusive_group()
    g.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (use up to -vvv).",
    )
    g.add_argument(
        "-q",
        "--quiet",
        action="count",
        default=0,
        help="Decrease verbosity (use up to -qqq).",
    )
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return p


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose, args.quiet)
    logger.info(f"Processing file: {args.input}")

    try:
        params = ConversionParams(
            refname=args.refname,
            targetref=args.targetref,
            reflen=args.reflen,
        )
        logger.debug(f"ConversionParams: {params}")

        stats = run_conversion(
            args.input,
            args.output,
            params,
            out_format=args.output_format,
            reference=args.cram_reference,
            force=bool(args.force),
        )
    except (OSError, ValueError, InvariantViolationError) as err:
        logger.error(f"Conversion failed: {err}")
        sys.exit(1)

    logger.success(
        f"Written: {stats.written} | Split: {stats.split} | Shifted: {stats.shifted} | "
        f"Unchanged: {stats.unchanged} | Unplaced: {stats.unplaced} | "
        f"Other references: {stats.other_reference}",
    )


if __name__ == "__main__":
    main()

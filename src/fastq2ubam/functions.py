"""Core functions for fastq2ubam."""

import gzip
import os
import shutil
import tempfile
from dataclasses import dataclass, field
from typing import IO, Optional, Sequence

# Third party modules
import pysam

from Bio.SeqIO.QualityIO import FastqGeneralIterator
from tqdm import tqdm

from fastq2ubam.codec import (
    CodecStats,
    MalformedFastqError,
    Mode,
    decode_lines,
    encode_lines,
)
from fastq2ubam.picard import PicardConfig, fastq_to_sam, sam_to_fastq

FASTQ_EXTENSIONS = (".fastq", ".fq")


@dataclass
class PipelineResult:
    """Outputs of a conversion and the codec counters of each FASTQ stream."""

    outputs: list[str]
    stats: dict[str, CodecStats] = field(default_factory=dict)
    ubam_records: int = 0

    @property
    def fastq_records(self) -> int:
        return sum(s.records for s in self.stats.values())


def open_fastq(path: str, mode: str = "rt") -> IO[str]:
    """Open a FASTQ file as text, through gzip when it ends in .gz."""
    if path.endswith(".gz"):
        return gzip.open(path, mode, encoding="latin-1", newline="")  # type: ignore
    return open(path, mode, encoding="latin-1", newline="")


def sample_name_from_fastq(fastq_r1: str) -> str:
    """Derive a sample name from an R1 file name.

    e.g. "/data/NA12878_S1_R1_001.fastq.gz" -> "NA12878_S1"
    """
    name = os.path.basename(fastq_r1)
    if name.endswith(".gz"):
        name = name[: -len(".gz")]
    for extension in FASTQ_EXTENSIONS:
        if name.endswith(extension):
            name = name[: -len(extension)]
            break
    return name.rsplit("_R1", 1)[0]


def default_ubam_path(fastq_r1: str) -> str:
    """Place the uBAM beside R1, named after the sample."""
    return os.path.join(
        os.path.dirname(os.path.abspath(fastq_r1)),
        sample_name_from_fastq(fastq_r1) + ".bam",
    )


def default_fastq_paths(input_bam: str, single_end: bool) -> list[str]:
    """Place FASTQ outputs beside the uBAM, gzip-compressed."""
    stem = os.path.splitext(os.path.abspath(input_bam))[0]
    if single_end:
        return [stem + ".fastq.gz"]
    return [stem + "_R1.fastq.gz", stem + "_R2.fastq.gz"]


def r2_path_from_r1(output_r1: str) -> str:
    """Name the R2 output after R1 by swapping the last "R1" in its file name.

    e.g. "out/sample_R1.fastq.gz" -> "out/sample_R2.fastq.gz"

    Raises
    ----------
    ValueError: If the file name has no "R1" to swap.
    """
    directory, name = os.path.split(output_r1)
    head, found, tail = name.rpartition("R1")
    if not found:
        raise ValueError(f"Cannot derive an R2 file name from: {output_r1}")
    return os.path.join(directory, head + "R2" + tail)


def check_outputs(outputs: Sequence[str], overwrite: bool) -> None:
    """Refuse to clobber existing outputs, and make sure their directories are writable.

    Raises
    ----------
    FileExistsError: If an output exists and overwrite is not set.
    PermissionError: If an output directory is not writable.
    """
    for output in outputs:
        if os.path.exists(output) and not overwrite:
            raise FileExistsError(
                f"Output file exists and --overwrite not specified: {output}"
            )
        output_dir = os.path.dirname(os.path.abspath(output))
        if not os.access(output_dir, os.W_OK):
            raise PermissionError(f"Output path is not writable: {output}")


def count_fastq_records(fastq: str) -> int:
    """Parse a whole FASTQ file and return its number of records.

    Raises
    ----------
    MalformedFastqError: If the file is not valid FASTQ.
    """
    with open_fastq(fastq) as handle:
        try:
            return sum(1 for _ in FastqGeneralIterator(handle))
        except ValueError as exc:
            raise MalformedFastqError(f"{fastq}: {exc}") from exc


def validate_fastq_inputs(
    fastq_r1: str, fastq_r2: Optional[str], verbose: bool = False
) -> int:
    """Check that the inputs parse and that paired files have matching lengths.

    Returns
    ----------
    int: The number of records per file.

    Raises
    ----------
    MalformedFastqError: If a file does not parse, or R1 and R2 differ in length.
    """
    if verbose:
        print(f"\tValidating: {fastq_r1}")
    r1_records = count_fastq_records(fastq_r1)
    if fastq_r2 is None:
        return r1_records

    if verbose:
        print(f"\tValidating: {fastq_r2}")
    r2_records = count_fastq_records(fastq_r2)
    if r1_records != r2_records:
        raise MalformedFastqError(
            f"Paired files have different numbers of records: "
            f"{fastq_r1} ({r1_records:,}) vs. {fastq_r2} ({r2_records:,})"
        )
    return r1_records


def count_ubam_records(input_bam: str) -> int:
    """Count the records of an unaligned BAM."""
    with pysam.AlignmentFile(  # type: ignore # pylint: disable=no-member
        input_bam, "rb", check_sq=False
    ) as bam:
        return sum(1 for _ in bam.fetch(until_eof=True))


def transcode_fastq(
    source: str,
    destination: str,
    mode: Mode,
    encode: bool,
    verbose: bool = False,
) -> CodecStats:
    """Stream one FASTQ file through the identifier codec.

    Args
    ----------
    source (str): FASTQ to read (.gz is decompressed).
    destination (str): FASTQ to write (.gz is compressed).
    mode (Mode): Which stream the file is.
    encode (bool): Encode when True, decode when False.
    verbose (bool): Show a progress bar.

    Returns
    ----------
    CodecStats: Counters for the pass.
    """
    stats = CodecStats()
    transform = encode_lines if encode else decode_lines
    with open_fastq(source) as reader, open_fastq(destination, "wt") as writer:
        lines = tqdm(
            reader,
            desc=os.path.basename(source),
            unit=" lines",
            disable=not verbose,
        )
        writer.writelines(transform(lines, mode, stats=stats))

    if not stats.is_complete:
        print(
            f"Warning: {source} ends with an incomplete record "
            f"({stats.trailing_lines} trailing line(s))."
        )
    if verbose and stats.trailing_blank_lines:
        print(f"\t{source} ends with {stats.trailing_blank_lines} blank line(s).")
    if verbose:
        print(
            f"\t{stats.records:,} records, {stats.rewritten:,} identifiers rewritten, "
            f"{stats.untouched:,} left unchanged."
        )
    return stats


def _warn_on_count_mismatch(fastq_records: int, ubam_records: int) -> None:
    if fastq_records != ubam_records:
        print(
            f"Warning: FASTQ record count ({fastq_records:,}) does not match "
            f"uBAM record count ({ubam_records:,})."
        )


def fastq_to_ubam(
    fastq_r1: str,
    fastq_r2: Optional[str],
    output_bam: str,
    sample_name: str,
    picard: PicardConfig,
    extra_options: Sequence[str] = (),
    validate: bool = True,
    verbose: bool = False,
) -> PipelineResult:
    """Convert FASTQ to an unaligned BAM without losing identifier comments.

    Args
    ----------
    fastq_r1 (str): R1 FASTQ, or the only FASTQ for single-end data.
    fastq_r2 (str, optional): R2 FASTQ; None for single-end data.
    output_bam (str): Where to write the uBAM.
    sample_name (str): Sample name for the read group (SM).
    picard (PicardConfig): How to launch Picard.
    extra_options (Sequence[str]): KEY=VALUE options passed to FastqToSam.
    validate (bool): Parse the inputs up front and check paired lengths.
    verbose (bool): Verbose output.

    Returns
    ----------
    PipelineResult: The output path and per-stream counters.

    Raises
    ----------
    MalformedFastqError: If an input is not well-formed FASTQ.
    PicardError: If FastqToSam fails.
    """
    if validate:
        validate_fastq_inputs(fastq_r1, fastq_r2, verbose=verbose)

    paired = fastq_r2 is not None
    inputs = {Mode.for_stream(paired, mate=1): fastq_r1}
    if paired:
        inputs[Mode.PAIRED_R2] = fastq_r2  # type: ignore

    output_dir = os.path.dirname(os.path.abspath(output_bam))
    result = PipelineResult(outputs=[output_bam])

    # Everything is staged here and removed on every exit path
    with tempfile.TemporaryDirectory(prefix=".fastq2ubam-", dir=output_dir) as tmp:
        encoded = {}
        for mode, fastq in inputs.items():
            if verbose:
                print(f"\nEncoding identifiers ({mode.value}): {fastq}")
            encoded[mode] = os.path.join(tmp, f"{mode.value}.fastq")
            result.stats[mode.value] = transcode_fastq(
                fastq, encoded[mode], mode, encode=True, verbose=verbose
            )

        staged_bam = os.path.join(tmp, "output.bam")
        if verbose:
            print(f"\nConverting to uBAM: {output_bam}")
        fastq_to_sam(
            picard,
            fastq_r1=encoded[Mode.for_stream(paired, mate=1)],
            fastq_r2=encoded.get(Mode.PAIRED_R2),
            output_bam=staged_bam,
            sample_name=sample_name,
            extra_options=extra_options,
            verbose=verbose,
        )

        result.ubam_records = count_ubam_records(staged_bam)
        _warn_on_count_mismatch(result.fastq_records, result.ubam_records)

        os.replace(staged_bam, output_bam)

    return result


def ubam_to_fastq(
    input_bam: str,
    output_r1: str,
    output_r2: Optional[str],
    picard: PicardConfig,
    extra_options: Sequence[str] = (),
    verbose: bool = False,
) -> PipelineResult:
    """Convert an unaligned BAM back to FASTQ, restoring identifier comments.

    Args
    ----------
    input_bam (str): uBAM produced by :func:`fastq_to_ubam`.
    output_r1 (str): R1 FASTQ, or the only FASTQ for single-end data.
        Compressed when it ends in .gz.
    output_r2 (str, optional): R2 FASTQ; None for single-end data.
    picard (PicardConfig): How to launch Picard.
    extra_options (Sequence[str]): KEY=VALUE options passed to SamToFastq.
    verbose (bool): Verbose output.

    Returns
    ----------
    PipelineResult: The output paths and per-stream counters.

    Raises
    ----------
    MalformedFastqError: If SamToFastq output is not well-formed FASTQ.
    PicardError: If SamToFastq fails.
    ValueError: If R1 and R2 name the same file.
    """
    paired = output_r2 is not None
    if paired and os.path.abspath(output_r1) == os.path.abspath(output_r2):  # type: ignore
        raise ValueError(f"R1 and R2 outputs are the same file: {output_r1}")
    outputs = {Mode.for_stream(paired, mate=1): output_r1}
    if paired:
        outputs[Mode.PAIRED_R2] = output_r2  # type: ignore

    result = PipelineResult(outputs=list(outputs.values()))
    result.ubam_records = count_ubam_records(input_bam)
    if verbose:
        print(f"\tTotal records in {input_bam}: {result.ubam_records:,}")

    output_dir = os.path.dirname(os.path.abspath(output_r1))
    with tempfile.TemporaryDirectory(prefix=".fastq2ubam-", dir=output_dir) as tmp:
        picard_outputs = {
            mode: os.path.join(tmp, f"{mode.value}.picard.fastq") for mode in outputs
        }
        if verbose:
            print(f"\nConverting to FASTQ: {input_bam}")
        sam_to_fastq(
            picard,
            input_bam=input_bam,
            fastq_r1=picard_outputs[Mode.for_stream(paired, mate=1)],
            fastq_r2=picard_outputs.get(Mode.PAIRED_R2),
            extra_options=extra_options,
            verbose=verbose,
        )

        staged = {}
        for mode, final_path in outputs.items():
            if verbose:
                print(f"\nDecoding identifiers ({mode.value}): {final_path}")
            staged[mode] = os.path.join(
                tmp, f"{mode.value}.fastq" + (".gz" if final_path.endswith(".gz") else "")
            )
            result.stats[mode.value] = transcode_fastq(
                picard_outputs[mode], staged[mode], mode, encode=False, verbose=verbose
            )

        _warn_on_count_mismatch(result.fastq_records, result.ubam_records)

        for mode, final_path in outputs.items():
            shutil.move(staged[mode], final_path)

    return result

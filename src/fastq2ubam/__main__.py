# Import modules
import click
import os
import time

from fastq2ubam.codec import MalformedFastqError
from fastq2ubam.functions import (
    check_outputs,
    default_fastq_paths,
    default_ubam_path,
    fastq_to_ubam,
    r2_path_from_r1,
    sample_name_from_fastq,
    ubam_to_fastq,
)
from fastq2ubam.picard import ConfigurationError, PicardConfig, PicardError

# Failures that end a run with "Error: ..." and exit code 1
PIPELINE_ERRORS = (
    ConfigurationError,
    MalformedFastqError,
    PicardError,
    FileExistsError,
    PermissionError,
)


def validate_picard_options(ctx, param, value: tuple) -> tuple:
    """Check that each passthrough option looks like KEY=VALUE."""
    for option in value:
        key, sep, _ = option.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got '{option}'")
    return value


def picard_options(f):
    """Options shared by both subcommands for locating and configuring Picard."""
    f = click.option(
        "--picard",
        envvar="PICARD",
        help="picard.jar, or an executable picard wrapper. Defaults to $PICARD.",
        type=str,
    )(f)
    f = click.option(
        "--java",
        envvar="JAVA",
        default="java",
        show_default=True,
        help="Java executable used to run picard.jar. Defaults to $JAVA.",
    )(f)
    f = click.option(
        "-O",
        "--picard-option",
        "picard_option",
        multiple=True,
        callback=validate_picard_options,
        help="Extra KEY=VALUE option passed verbatim to Picard (repeatable).",
    )(f)
    f = click.option(
        "--overwrite", help="Overwrite output files if they exist.", is_flag=True
    )(f)
    f = click.option("--verbose", help="Verbose output.", is_flag=True)(f)
    return f


def load_picard(picard: str, java: str) -> PicardConfig:
    try:
        return PicardConfig.from_path(picard, java=java)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e


@click.group(
    help="Convert FASTQ files to unaligned BAM and back with Picard, keeping the full read identifiers."
)
@click.version_option(package_name="fastq2ubam")
def main() -> None:
    """fastq2ubam."""


@main.command(
    "to-ubam",
    help="Convert one single-end or two paired-end FASTQ files (R1 then R2) into an unaligned BAM file.",
)
@click.argument(
    "r1", type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True)
)
@click.argument(
    "r2",
    required=False,
    type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True),
)
@click.option("--single-end", help="Input is a single single-end FASTQ.", is_flag=True)
@click.option(
    "-o",
    "--output",
    help="Output .bam file. Defaults to the sample name, beside R1.",
    type=click.Path(dir_okay=False),
)
@click.option(
    "-s",
    "--sample-name",
    help="Sample name (SM). Defaults to the R1 file name up to '_R1'.",
    type=str,
)
@click.option(
    "--skip-validation",
    help="Do not parse the inputs before converting.",
    is_flag=True,
)
@picard_options
def to_ubam(
    r1: str,
    r2: str,
    single_end: bool,
    output: str,
    sample_name: str,
    skip_validation: bool,
    picard: str,
    java: str,
    picard_option: tuple,
    overwrite: bool,
    verbose: bool,
) -> None:
    """FASTQ -> uBAM."""
    time_start = time.time()

    if single_end and r2:
        raise click.UsageError("R2 given, but --single-end was requested.")
    if not single_end and not r2:
        raise click.UsageError(
            "Paired-end mode needs R1 and R2 (use --single-end for a single file)."
        )

    picard_config = load_picard(picard, java)

    output = output or default_ubam_path(r1)
    sample_name = sample_name or sample_name_from_fastq(r1)

    print(f"Input R1: {r1}")
    if r2:
        print(f"Input R2: {r2}")
    print(f"Sample name: {sample_name}")
    print(f"Output: {output}")

    try:
        check_outputs([output], overwrite=overwrite)
        result = fastq_to_ubam(
            fastq_r1=r1,
            fastq_r2=r2,
            output_bam=output,
            sample_name=sample_name,
            picard=picard_config,
            extra_options=picard_option,
            validate=not skip_validation,
            verbose=verbose,
        )
    except PIPELINE_ERRORS as e:
        raise click.ClickException(str(e)) from e

    print(f"\nWrote {result.ubam_records:,} records to: {output}")
    print(f"Time elapsed: {time.time() - time_start:.2f} seconds")


@main.command(
    "from-ubam",
    help="Convert an unaligned BAM file into one single-end or two paired-end FASTQ files. Outputs ending in .gz are compressed. Given only an R1 output in paired-end mode, R2 is named by swapping R1 for R2.",
)
@click.argument(
    "bam", type=click.Path(exists=True, file_okay=True, dir_okay=False, readable=True)
)
@click.argument("outputs", nargs=-1, type=click.Path(dir_okay=False))
@click.option(
    "--single-end", help="Write a single single-end FASTQ.", is_flag=True
)
@picard_options
def from_ubam(
    bam: str,
    outputs: tuple,
    single_end: bool,
    picard: str,
    java: str,
    picard_option: tuple,
    overwrite: bool,
    verbose: bool,
) -> None:
    """uBAM -> FASTQ."""
    time_start = time.time()

    output_paths = list(outputs)
    if not single_end and len(output_paths) == 1:
        # R2 is named after R1, e.g. sample_R1.fastq.gz -> sample_R2.fastq.gz
        try:
            output_paths.append(r2_path_from_r1(output_paths[0]))
        except ValueError as e:
            raise click.UsageError(f"{e}. Give both R1 and R2 outputs.") from e

    expected = 1 if single_end else 2
    if output_paths and len(output_paths) != expected:
        raise click.UsageError(
            f"Expected {expected} output FASTQ file(s) in "
            f"{'single-end' if single_end else 'paired-end'} mode, got {len(outputs)}."
        )
    if len(output_paths) == 2 and os.path.abspath(output_paths[0]) == os.path.abspath(
        output_paths[1]
    ):
        raise click.UsageError(f"R1 and R2 outputs are the same file: {output_paths[0]}")

    picard_config = load_picard(picard, java)

    output_paths = output_paths or default_fastq_paths(bam, single_end=single_end)

    print(f"Input: {bam}")
    for output in output_paths:
        print(f"Output: {output}")

    try:
        check_outputs(output_paths, overwrite=overwrite)
        result = ubam_to_fastq(
            input_bam=bam,
            output_r1=output_paths[0],
            output_r2=None if single_end else output_paths[1],
            picard=picard_config,
            extra_options=picard_option,
            verbose=verbose,
        )
    except PIPELINE_ERRORS as e:
        raise click.ClickException(str(e)) from e

    print(f"\nWrote {result.fastq_records:,} records.")
    print(f"Time elapsed: {time.time() - time_start:.2f} seconds")


if __name__ == "__main__":
    main(prog_name="fastq2ubam")  # pylint: disable=no-value-for-parameter

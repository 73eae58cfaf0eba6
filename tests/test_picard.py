import os
import sys

import pytest

from fastq2ubam import picard
from fastq2ubam.picard import ConfigurationError, PicardConfig, PicardError


def test_from_path_executable(fake_picard) -> None:
    """An executable wrapper is launched directly."""

    config = PicardConfig.from_path(fake_picard)
    assert config.launcher == (fake_picard,)
    assert config.command("FastqToSam", ["F1=a"]) == [fake_picard, "FastqToSam", "F1=a"]


def test_from_path_jar(tmp_path) -> None:
    """A jar is launched through java -jar."""

    jar = tmp_path / "picard.jar"
    jar.touch()

    # Any resolvable executable stands in for java
    config = PicardConfig.from_path(str(jar), java=sys.executable)
    assert config.launcher[1:] == ("-jar", str(jar))
    assert os.path.samefile(config.launcher[0], sys.executable)


def test_from_path_missing_java(tmp_path) -> None:
    jar = tmp_path / "picard.jar"
    jar.touch()

    with pytest.raises(ConfigurationError, match="Cannot find java executable"):
        PicardConfig.from_path(str(jar), java="no-such-java-binary")


def test_from_path_unset() -> None:
    with pytest.raises(ConfigurationError, match="not configured"):
        PicardConfig.from_path(None)
    with pytest.raises(ConfigurationError, match="not configured"):
        PicardConfig.from_path("")


def test_from_path_nonexistent() -> None:
    with pytest.raises(ConfigurationError, match="does not exist"):
        PicardConfig.from_path("/nonexistent/picard.jar")


def test_from_path_not_executable(tmp_path) -> None:
    wrapper = tmp_path / "picard"
    wrapper.write_text("not a program\n")
    os.chmod(wrapper, 0o644)

    with pytest.raises(ConfigurationError, match="neither a .jar nor executable"):
        PicardConfig.from_path(str(wrapper))


def test_format_arguments() -> None:
    """Unset keys are skipped and extra options are appended verbatim."""

    arguments = picard.format_arguments(
        {"F1": "r1.fq", "F2": None, "O": "out.bam"},
        ["PLATFORM=ILLUMINA", "READ_GROUP_NAME=rg 1"],
    )
    assert arguments == ["F1=r1.fq", "O=out.bam", "PLATFORM=ILLUMINA", "READ_GROUP_NAME=rg 1"]


def test_run_picard_failure(picard_config, tmp_path) -> None:
    """A non-zero exit raises PicardError carrying the exit code."""

    with pytest.raises(PicardError, match="FastqToSam failed with exit code 3") as excinfo:
        picard.run_picard(picard_config, "FastqToSam", ["FAIL=true"])
    assert excinfo.value.returncode == 3
    assert excinfo.value.command[-2:] == ["FastqToSam", "FAIL=true"]


def test_run_picard_cannot_launch(tmp_path) -> None:
    config = PicardConfig(launcher=(str(tmp_path / "missing"),))
    with pytest.raises(PicardError, match="could not be launched"):
        picard.run_picard(config, "SamToFastq", [])


def test_fastq_to_sam_arguments(picard_config, tmp_path) -> None:
    """FastqToSam gets F1/F2/O/SM followed by the passthrough options."""

    log = tmp_path / "args.txt"
    with pytest.raises(PicardError):
        picard.fastq_to_sam(
            picard_config,
            fastq_r1="r1.fastq",
            fastq_r2="r2.fastq",
            output_bam="out.bam",
            sample_name="NA12878",
            extra_options=[f"ARGS_LOG={log}", "FAIL=true"],
        )

    assert log.read_text().splitlines() == [
        "FastqToSam",
        "F1=r1.fastq",
        "F2=r2.fastq",
        "O=out.bam",
        "SM=NA12878",
        f"ARGS_LOG={log}",
        "FAIL=true",
    ]


def test_sam_to_fastq_single_end_arguments(picard_config, tmp_path) -> None:
    log = tmp_path / "args.txt"
    with pytest.raises(PicardError):
        picard.sam_to_fastq(
            picard_config,
            input_bam="in.bam",
            fastq_r1="out.fastq",
            fastq_r2=None,
            extra_options=[f"ARGS_LOG={log}", "FAIL=true"],
        )

    assert log.read_text().splitlines() == [
        "SamToFastq",
        "I=in.bam",
        "F=out.fastq",
        f"ARGS_LOG={log}",
        "FAIL=true",
    ]

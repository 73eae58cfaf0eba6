"""Launching Picard's FastqToSam and SamToFastq tools."""

import os
import shutil
import subprocess
from dataclasses import dataclass
from typing import Optional, Sequence


class ConfigurationError(ValueError):
    """Raised when Picard (or the java runtime it needs) cannot be used."""


class PicardError(RuntimeError):
    """Raised when a Picard tool cannot be launched or exits non-zero."""

    def __init__(self, tool: str, returncode: Optional[int], command: Sequence[str]):
        self.tool = tool
        self.returncode = returncode
        self.command = list(command)
        if returncode is None:
            message = f"Picard {tool} could not be launched: {' '.join(command)}"
        else:
            message = f"Picard {tool} failed with exit code {returncode}"
        super().__init__(message)


@dataclass(frozen=True)
class PicardConfig:
    """How to launch Picard.

    ``launcher`` is the argv prefix placed before the tool name, e.g.
    ``("java", "-jar", "/opt/picard/picard.jar")`` or ``("/usr/bin/picard",)``.
    """

    launcher: tuple[str, ...]

    @classmethod
    def from_path(cls, path: Optional[str], java: str = "java") -> "PicardConfig":
        """Build a config from a picard.jar or an executable picard wrapper.

        Args
        ----------
        path (str): A picard.jar file, or an executable that takes the tool
            name as its first argument.
        java (str): The java executable used to run a jar.

        Returns
        ----------
        PicardConfig: The resolved launcher.

        Raises
        ----------
        ConfigurationError: If the path is missing, is not a file, is not
            executable (for non-jars), or java cannot be found.
        """
        if not path:
            raise ConfigurationError(
                "Picard is not configured. Set $PICARD or pass --picard."
            )
        if not os.path.isfile(path):
            raise ConfigurationError(f"Picard path does not exist: {path}")

        if path.endswith(".jar"):
            if not os.access(path, os.R_OK):
                raise ConfigurationError(f"Picard jar is not readable: {path}")
            java_path = shutil.which(java)
            if java_path is None:
                raise ConfigurationError(
                    f"Cannot find java executable '{java}' needed to run {path}"
                )
            return cls(launcher=(java_path, "-jar", path))

        if not os.access(path, os.X_OK):
            raise ConfigurationError(
                f"Picard path is neither a .jar nor executable: {path}"
            )
        return cls(launcher=(path,))

    def command(self, tool: str, arguments: Sequence[str]) -> list[str]:
        return [*self.launcher, tool, *arguments]


def format_arguments(
    named: dict[str, Optional[str]], extra_options: Sequence[str] = ()
) -> list[str]:
    """Render Picard's KEY=VALUE arguments, skipping unset keys.

    Extra options are passed through verbatim after the named ones.
    """
    arguments = [f"{key}={value}" for key, value in named.items() if value is not None]
    arguments.extend(extra_options)
    return arguments


def run_picard(
    picard: PicardConfig,
    tool: str,
    arguments: Sequence[str],
    verbose: bool = False,
) -> None:
    """Run a Picard tool and wait for it.

    Raises
    ----------
    PicardError: If the tool cannot be started or exits non-zero.
    """
    command = picard.command(tool, arguments)
    if verbose:
        print(f"\tRunning: {' '.join(command)}")

    try:
        completed = subprocess.run(command, check=False)
    except OSError as exc:
        raise PicardError(tool, None, command) from exc

    if completed.returncode != 0:
        raise PicardError(tool, completed.returncode, command)


def fastq_to_sam(
    picard: PicardConfig,
    fastq_r1: str,
    fastq_r2: Optional[str],
    output_bam: str,
    sample_name: str,
    extra_options: Sequence[str] = (),
    verbose: bool = False,
) -> None:
    """Convert one or two FASTQ files to an unaligned BAM with FastqToSam."""
    arguments = format_arguments(
        {"F1": fastq_r1, "F2": fastq_r2, "O": output_bam, "SM": sample_name},
        extra_options,
    )
    run_picard(picard, "FastqToSam", arguments, verbose=verbose)


def sam_to_fastq(
    picard: PicardConfig,
    input_bam: str,
    fastq_r1: str,
    fastq_r2: Optional[str],
    extra_options: Sequence[str] = (),
    verbose: bool = False,
) -> None:
    """Convert an unaligned BAM to one or two FASTQ files with SamToFastq."""
    arguments = format_arguments(
        {"I": input_bam, "F": fastq_r1, "F2": fastq_r2},
        extra_options,
    )
    run_picard(picard, "SamToFastq", arguments, verbose=verbose)

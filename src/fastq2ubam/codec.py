"""Reversible read identifier encoding for FASTQ streams.

Picard's FastqToSam keeps only the part of a read identifier before the first
whitespace, so the Illumina comment (e.g. ``1:N:0:AGTCAA``) is lost on the way
into an unaligned BAM. ``encode`` folds the comment into the read name by
swapping the separating space for ``;`` and ``decode`` puts it back after
SamToFastq.

Only identifier lines are rewritten. By default an identifier line is the first
line of every 4-line record; a quality line may legitimately start with ``@``
(Phred+33 Q31), so matching on content alone is unsafe and only used when
``positional=False`` is asked for explicitly.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Iterator, Optional

SENTINEL = "@"
SEPARATOR_SENTINEL = "+"
DELIMITER = ";"
LINES_PER_RECORD = 4

# SamToFastq appends /1 and /2 to paired read names
MATE_SUFFIX = re.compile(r"/\d$")


class MalformedFastqError(ValueError):
    """Raised when a FASTQ stream does not follow the 4-line record layout."""


class Mode(str, Enum):
    """Which stream a FASTQ file belongs to."""

    SINGLE_END = "single-end"
    PAIRED_R1 = "paired-R1"
    PAIRED_R2 = "paired-R2"

    @property
    def mate(self) -> str:
        """The mate index carried in the identifier comment ("" for single-end)."""
        return {"paired-R1": "1", "paired-R2": "2"}.get(self.value, "")

    @property
    def mate_field(self) -> str:
        """What the delimiter stands for: ``1:``/``2:`` when paired, nothing otherwise."""
        return self.mate + ":" if self.mate else ""

    @classmethod
    def for_stream(cls, paired: bool, mate: int = 1) -> "Mode":
        if not paired:
            return cls.SINGLE_END
        return cls.PAIRED_R1 if mate == 1 else cls.PAIRED_R2


@dataclass
class CodecStats:
    """Counters collected over one encode/decode pass."""

    lines: int = 0
    records: int = 0
    rewritten: int = 0
    untouched: int = 0
    trailing_lines: int = 0
    trailing_blank_lines: int = 0

    @property
    def is_complete(self) -> bool:
        return self.trailing_lines == 0


def split_line_ending(line: str) -> tuple[str, str]:
    """Split a line into its content and its terminator ("\\n", "\\r\\n" or "")."""
    body = line.rstrip("\r\n")
    return body, line[len(body) :]


def is_identifier_line(line: str) -> bool:
    """Content-only identifier test. Unsound on quality lines; see module docs."""
    return line.startswith(SENTINEL)


def encode_line(line: str, mode: Mode) -> str:
    """Encode one identifier line.

    Args
    ----------
    line (str): An identifier line, with or without its terminator.
    mode (Mode): The stream the line came from.

    Returns
    ----------
    str: The line with its first space (and, when paired, the mate field)
        replaced by the delimiter. Lines with nothing to encode are returned
        as-is.
    """
    if not is_identifier_line(line):
        return line
    body, ending = split_line_ending(line)

    space = body.find(" ")
    if space == -1:
        return line

    # Paired comments must start with the expected "<mate>:" to be folded
    separator = " " + mode.mate_field
    if not body.startswith(separator, space):
        return line

    return body[:space] + DELIMITER + body[space + len(separator) :] + ending


def decode_line(line: str, mode: Mode) -> str:
    """Decode one identifier line, the inverse of :func:`encode_line`.

    The first delimiter becomes a space followed by the mate field. In paired
    modes a trailing ``/<digit>`` added by SamToFastq is dropped as well. Lines
    without a delimiter are returned unchanged.
    """
    if not is_identifier_line(line):
        return line
    body, ending = split_line_ending(line)

    delimiter = body.find(DELIMITER)
    if delimiter == -1:
        return line

    if mode.mate:
        body = MATE_SUFFIX.sub("", body)
    return body[:delimiter] + " " + mode.mate_field + body[delimiter + 1 :] + ending


def _transform_lines(
    lines: Iterable[str],
    line_fn: Callable[[str], str],
    positional: bool,
    stats: CodecStats,
) -> Iterator[str]:
    position = 0
    # Blank lines where an identifier is due; fine only if nothing follows them
    held_blank: list[tuple[int, str]] = []
    for number, line in enumerate(lines, start=1):
        stats.lines += 1
        if positional:
            eligible = position == 0
            if eligible and not line.strip():
                held_blank.append((number, line))
                continue
            if held_blank:
                # Blank lines followed by more data are a misaligned record
                number, line = held_blank[0]
            if eligible and not is_identifier_line(line):
                raise MalformedFastqError(
                    f"Line {number}: expected a read identifier starting with "
                    f"'{SENTINEL}', got {line[:40]!r}"
                )
            if position == 2 and not line.startswith(SEPARATOR_SENTINEL):
                raise MalformedFastqError(
                    f"Line {number}: expected a separator line starting with "
                    f"'{SEPARATOR_SENTINEL}', got {line[:40]!r}"
                )
        else:
            eligible = is_identifier_line(line)

        if eligible:
            new_line = line_fn(line)
            if new_line == line:
                stats.untouched += 1
            else:
                stats.rewritten += 1
            yield new_line
        else:
            yield line

        position = (position + 1) % LINES_PER_RECORD
        if position == 0:
            stats.records += 1

    for _, line in held_blank:
        yield line
    stats.trailing_blank_lines = len(held_blank)
    stats.trailing_lines = position


def encode_lines(
    lines: Iterable[str],
    mode: Mode,
    positional: bool = True,
    stats: Optional[CodecStats] = None,
) -> Iterator[str]:
    """Lazily encode every identifier line of a FASTQ stream.

    Args
    ----------
    lines (Iterable[str]): FASTQ lines, terminators included.
    mode (Mode): The stream the lines came from.
    positional (bool): Treat only the first line of each 4-line record as an
        identifier. With False, any line starting with '@' is rewritten.
    stats (CodecStats, optional): Counters to fill in while iterating.

    Returns
    ----------
    Iterator[str]: One output line per input line, in order.

    Raises
    ----------
    MalformedFastqError: In positional mode, when a record is misaligned.
    """
    return _transform_lines(
        lines,
        lambda line: encode_line(line, mode),
        positional,
        stats if stats is not None else CodecStats(),
    )


def decode_lines(
    lines: Iterable[str],
    mode: Mode,
    positional: bool = True,
    stats: Optional[CodecStats] = None,
) -> Iterator[str]:
    """Lazily decode every identifier line of a FASTQ stream.

    Same arguments and guarantees as :func:`encode_lines`.
    """
    return _transform_lines(
        lines,
        lambda line: decode_line(line, mode),
        positional,
        stats if stats is not None else CodecStats(),
    )

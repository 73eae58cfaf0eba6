"""Shared fixtures, including a stand-in for Picard.

The stand-in behaves like Picard where it matters here: FastqToSam keeps only
the read name up to the first whitespace (dropping a /1 or /2 suffix), and
SamToFastq writes paired reads back with /1 and /2 appended. It is written with
pysam, so the uBAMs it produces are real BAM files.
"""

import os
import stat
import sys

import pytest

from fastq2ubam.picard import PicardConfig

FAKE_PICARD = '''
import sys
import pysam


def read_fastq(path):
    with open(path) as f:
        while True:
            header = f.readline()
            if not header.strip():
                return
            sequence = f.readline().rstrip("\\n")
            f.readline()
            quality = f.readline().rstrip("\\n")
            name = header[1:].split()[0]
            if name[-2:] in ("/1", "/2"):
                name = name[:-2]
            yield name, sequence, quality


def segment(header, name, sequence, quality, flag):
    a = pysam.AlignedSegment(header)
    a.query_name = name
    a.query_sequence = sequence
    a.query_qualities = pysam.qualitystring_to_array(quality)
    a.flag = flag
    a.reference_id = -1
    a.reference_start = -1
    a.next_reference_id = -1
    a.next_reference_start = -1
    a.set_tag("RG", "A")
    return a


def fastq_to_sam(opts):
    header = {
        "HD": {"VN": "1.6", "SO": "queryname"},
        "RG": [{"ID": "A", "SM": opts["SM"]}],
    }
    with pysam.AlignmentFile(opts["O"], "wb", header=header) as bam:
        if "F2" in opts:
            pairs = zip(read_fastq(opts["F1"]), read_fastq(opts["F2"]))
            for (name, s1, q1), (_, s2, q2) in pairs:
                bam.write(segment(bam.header, name, s1, q1, 77))
                bam.write(segment(bam.header, name, s2, q2, 141))
        else:
            for name, sequence, quality in read_fastq(opts["F1"]):
                bam.write(segment(bam.header, name, sequence, quality, 4))


def sam_to_fastq(opts):
    paired = "F2" in opts
    f1 = open(opts["F"], "w")
    f2 = open(opts["F2"], "w") if paired else None
    with pysam.AlignmentFile(opts["I"], "rb", check_sq=False) as bam:
        for a in bam.fetch(until_eof=True):
            quality = pysam.qualities_to_qualitystring(a.query_qualities)
            if paired:
                out, suffix = (f1, "/1") if a.is_read1 else (f2, "/2")
            else:
                out, suffix = f1, ""
            out.write(f"@{a.query_name}{suffix}\\n{a.query_sequence}\\n+\\n{quality}\\n")
    f1.close()
    if f2:
        f2.close()


tool, args = sys.argv[1], sys.argv[2:]
opts = dict(arg.split("=", 1) for arg in args)
if "ARGS_LOG" in opts:
    with open(opts["ARGS_LOG"], "w") as log:
        log.write("\\n".join([tool] + args))
if "FAIL" in opts:
    sys.exit(3)
{"FastqToSam": fastq_to_sam, "SamToFastq": sam_to_fastq}[tool](opts)
'''


@pytest.fixture
def fake_picard(tmp_path_factory) -> str:
    """Path to an executable stand-in for a picard wrapper script."""
    script = tmp_path_factory.mktemp("picard") / "picard"
    script.write_text(f"#!{sys.executable}\n" + FAKE_PICARD)
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(script)


@pytest.fixture
def picard_config(fake_picard) -> PicardConfig:
    """A PicardConfig that runs the stand-in with the current interpreter."""
    return PicardConfig(launcher=(sys.executable, fake_picard))


PAIRED_R1 = (
    "@A00123:8:H5KJ:1:1101:1000:2000 1:N:0:AGTCAA\n"
    "ACGTACGT\n"
    "+\n"
    "FFFF:FFF\n"
    "@A00123:8:H5KJ:1:1101:1001:2000 1:Y:0:AGTCAA\n"
    "TTGCAAGG\n"
    "+\n"
    "@FF;FFFF\n"
)

PAIRED_R2 = (
    "@A00123:8:H5KJ:1:1101:1000:2000 2:N:0:AGTCAA\n"
    "GGCATTCA\n"
    "+\n"
    "FF,FFFFF\n"
    "@A00123:8:H5KJ:1:1101:1001:2000 2:Y:0:AGTCAA\n"
    "CCTTGCAA\n"
    "+\n"
    "@@@;FFFF\n"
)

SINGLE_END = (
    "@read1 1:N:0:GATTACA\n"
    "ACGT\n"
    "+\n"
    "FFFF\n"
    "@read2 barcode=ACGT\n"
    "GGCC\n"
    "+\n"
    "@F;F\n"
)


@pytest.fixture
def paired_fastqs(tmp_path) -> tuple:
    """A small R1/R2 pair, including quality lines starting with '@'."""
    r1 = tmp_path / "sample_S1_R1_001.fastq"
    r2 = tmp_path / "sample_S1_R2_001.fastq"
    r1.write_text(PAIRED_R1)
    r2.write_text(PAIRED_R2)
    return str(r1), str(r2)


@pytest.fixture
def single_end_fastq(tmp_path) -> str:
    fastq = tmp_path / "single.fastq"
    fastq.write_text(SINGLE_END)
    return str(fastq)


def leftover_temp_dirs(directory) -> list:
    return [name for name in os.listdir(directory) if name.startswith(".fastq2ubam-")]

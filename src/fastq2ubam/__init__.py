"""fastq2ubam: Convert FASTQ to unaligned BAM and back without losing read identifiers.

Picard's FastqToSam keeps only the part of a read identifier before the first
whitespace, so Illumina comments such as ``1:N:0:AGTCAA`` do not survive a
FASTQ -> uBAM -> FASTQ round trip. fastq2ubam wraps Picard with a reversible
identifier encoding so the original FASTQ identifiers come back byte-for-byte.

Limitations:
    - A paired read with no comment (``@r1``) comes back from SamToFastq as
      ``@r1/1``. Without an encoded comment there is no way to tell that
      suffix from one the input already had, so it is kept.
    - Single-end comments are folded at their first space only; Picard still
      truncates the read name at any later whitespace.

Main Components:
    codec: encode_lines / decode_lines, the line-level identifier transform.
    picard: PicardConfig and the FastqToSam / SamToFastq invocations.
    functions: fastq_to_ubam and ubam_to_fastq pipelines.

Example:
    Command-line usage::

        $ export PICARD=/opt/picard/picard.jar
        $ fastq2ubam to-ubam sample_R1.fastq.gz sample_R2.fastq.gz -o sample.bam
        $ fastq2ubam from-ubam sample.bam sample_R1.fastq.gz sample_R2.fastq.gz

    Python API usage::

        from fastq2ubam.codec import Mode, encode_lines

        with open("sample_R1.fastq") as f:
            for line in encode_lines(f, Mode.PAIRED_R1):
                ...
"""

__version__ = "1.0"

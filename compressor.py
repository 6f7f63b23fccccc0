"""
Главный класс для сжатия и разжатия текстовых файлов.
"""

import codecs
from typing import Optional

from artifact import (ArtifactFormat, HuffmanArtifact, DEFAULT_ENCODING,
                      calculate_crc32, verify_integrity)
from errors import DecodingInconsistencyError, LossyEncodingError, MalformedArtifactError
from huffman import HuffmanEncoder, HuffmanTree


class CompressionSummary:
    def __init__(self, input_path: str, output_path: str, original_size: int,
                 encoded_bits: int, artifact_size: int, distinct_symbols: int):
        self.input_path = input_path
        self.output_path = output_path
        self.original_size = original_size
        self.encoded_bits = encoded_bits
        self.artifact_size = artifact_size
        self.distinct_symbols = distinct_symbols

        self.original_bits = original_size * 8
        self.encoded_size = (encoded_bits + 7) // 8

        self.compression_ratio = (
            (1 - encoded_bits / self.original_bits) * 100
            if self.original_bits > 0 else 0
        )

    def print_summary(self):
        print("\nCompression Summary:")
        print(f"  Input file:        {self.input_path}")
        print(f"  Output file:       {self.output_path}")
        print(f"  Original size:     {self.original_bits} bits ({self.original_size} bytes)")
        print(f"  Compressed size:   {self.encoded_bits} bits ({self.encoded_size} bytes)")
        print(f"  Artifact size:     {self.artifact_size} bytes")
        print(f"  Distinct symbols:  {self.distinct_symbols}")
        print(f"  Compression ratio: {self.compression_ratio:.2f}%")


def normalize_encoding(encoding: str) -> str:
    return codecs.lookup(encoding).name


class TextCompressor:
    def __init__(self, encoding: str = DEFAULT_ENCODING, verbose: bool = True):
        self.encoding = normalize_encoding(encoding)
        self.verbose = verbose

    def compress_file(self, input_path: str, output_path: str) -> CompressionSummary:
        with open(input_path, 'rb') as f:
            data = f.read()

        text = data.decode(self.encoding)

        artifact = HuffmanEncoder.encode(text, self.encoding)

        # BOM или порядок байтов, которые кодек не восстановит при распаковке
        if text.encode(self.encoding) != data:
            raise LossyEncodingError(
                f"{input_path} does not round-trip through {self.encoding}, "
                f"decompressed bytes would differ from the original"
            )

        artifact.original_size = len(data)
        artifact.crc32 = calculate_crc32(data)

        artifact_data = ArtifactFormat.serialize(artifact)

        with open(output_path, 'wb') as f:
            f.write(artifact_data)

        summary = CompressionSummary(
            input_path=input_path,
            output_path=output_path,
            original_size=len(data),
            encoded_bits=artifact.bit_count,
            artifact_size=len(artifact_data),
            distinct_symbols=len(artifact.frequencies)
        )

        if self.verbose:
            summary.print_summary()

        return summary

    def decompress_file(self, input_path: str, output_path: str) -> int:
        artifact = self.load_artifact(input_path)

        try:
            encoding = normalize_encoding(artifact.encoding)
        except LookupError:
            raise MalformedArtifactError(f"Unknown text encoding: {artifact.encoding}") from None

        text = HuffmanEncoder.decode(artifact)
        try:
            decoded = text.encode(encoding)
        except UnicodeEncodeError as e:
            raise DecodingInconsistencyError(
                f"Decoded text cannot be encoded as {encoding}: {e.reason}"
            ) from None

        if not verify_integrity(artifact, decoded):
            raise DecodingInconsistencyError(f"CRC32 mismatch for {input_path}")

        with open(output_path, 'wb') as f:
            f.write(decoded)

        if self.verbose:
            print(f"Decompression complete -> {output_path}")

        return len(decoded)

    @staticmethod
    def load_artifact(path: str) -> HuffmanArtifact:
        with open(path, 'rb') as f:
            data = f.read()

        return ArtifactFormat.deserialize(data)

    def inspect_file(self, path: str, limit: Optional[int] = None) -> HuffmanArtifact:
        artifact = self.load_artifact(path)

        tree = HuffmanTree()
        tree.build(artifact.frequencies)

        print(f"Encoding:          {artifact.encoding}")
        print(f"Original size:     {artifact.original_size} bytes")
        print(f"CRC32:             {artifact.crc32:08x}")
        print(f"Symbols:           {artifact.symbol_count}")
        print(f"Distinct symbols:  {len(artifact.frequencies)}")
        print(f"Encoded bits:      {artifact.bit_count}")
        print()

        print(f"{'Symbol':<12} {'Count':>10} {'Code':<24}")
        print("-" * 48)

        ranked = sorted(artifact.frequencies.items(), key=lambda item: (-item[1], ord(item[0])))
        if limit is not None:
            ranked = ranked[:limit]

        for symbol, count in ranked:
            print(f"{symbol!r:<12} {count:>10} {tree.codes[symbol]:<24}")

        return artifact

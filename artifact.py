"""
Определяет структуру сжатого файла и методы чтения/записи.

Порядок полей: заголовок, таблица частот, число значащих битов,
упакованные биты.
"""

import io
import struct
import zlib
from dataclasses import dataclass
from typing import Dict, Tuple

from errors import MalformedArtifactError


ARTIFACT_MAGIC = b'HUFT'
ARTIFACT_VERSION = 1
DEFAULT_ENCODING = 'utf-8'
MAX_CODE_POINT = 0x10FFFF
SURROGATES = range(0xD800, 0xE000)

HEADER_FIXED_SIZE = 4 + 1 + 1
HEADER_TRAILER = struct.Struct('<QI')
TABLE_ENTRY = struct.Struct('<II')


@dataclass
class HuffmanArtifact:
    frequencies: Dict[str, int]
    bit_count: int
    packed: bytes
    encoding: str = DEFAULT_ENCODING
    original_size: int = 0
    crc32: int = 0

    @property
    def symbol_count(self) -> int:
        return sum(self.frequencies.values())


class ArtifactFormat:
    @staticmethod
    def serialize(artifact: HuffmanArtifact) -> bytes:
        output = io.BytesIO()

        ArtifactFormat._write_header(output, artifact)

        output.write(struct.pack('<I', len(artifact.frequencies)))
        for symbol in sorted(artifact.frequencies, key=ord):
            output.write(TABLE_ENTRY.pack(ord(symbol), artifact.frequencies[symbol]))

        output.write(struct.pack('<Q', artifact.bit_count))
        output.write(artifact.packed)

        return output.getvalue()

    @staticmethod
    def _write_header(output: io.BytesIO, artifact: HuffmanArtifact):
        encoding_bytes = artifact.encoding.encode('ascii')
        if len(encoding_bytes) > 255:
            raise ValueError(f"Encoding name too long: {artifact.encoding}")

        output.write(ARTIFACT_MAGIC)
        output.write(struct.pack('B', ARTIFACT_VERSION))
        output.write(struct.pack('B', len(encoding_bytes)))
        output.write(encoding_bytes)
        output.write(HEADER_TRAILER.pack(artifact.original_size, artifact.crc32))

    @staticmethod
    def deserialize(data: bytes) -> HuffmanArtifact:
        encoding, original_size, crc32, pos = ArtifactFormat._read_header(data)
        frequencies, pos = ArtifactFormat._read_frequencies(data, pos)

        if pos + 8 > len(data):
            raise MalformedArtifactError("Truncated artifact: cannot read bit count")

        bit_count = struct.unpack_from('<Q', data, pos)[0]
        pos += 8

        packed_size = (bit_count + 7) // 8
        if pos + packed_size > len(data):
            raise MalformedArtifactError(
                f"Truncated artifact: expected {packed_size} packed bytes, "
                f"found {len(data) - pos}"
            )

        packed = data[pos:pos+packed_size]
        pos += packed_size

        if pos != len(data):
            raise MalformedArtifactError(f"Trailing data after packed bits: {len(data) - pos} bytes")

        return HuffmanArtifact(
            frequencies=frequencies,
            bit_count=bit_count,
            packed=packed,
            encoding=encoding,
            original_size=original_size,
            crc32=crc32
        )

    @staticmethod
    def _read_header(data: bytes) -> Tuple[str, int, int, int]:
        if len(data) < HEADER_FIXED_SIZE:
            raise MalformedArtifactError("Artifact too small")

        if data[:4] != ARTIFACT_MAGIC:
            raise MalformedArtifactError("Invalid artifact magic")
        pos = 4

        version = data[pos]
        if version != ARTIFACT_VERSION:
            raise MalformedArtifactError(f"Unsupported version: {version}")
        pos += 1

        name_len = data[pos]
        pos += 1

        if pos + name_len + HEADER_TRAILER.size > len(data):
            raise MalformedArtifactError("Truncated artifact header")

        try:
            encoding = data[pos:pos+name_len].decode('ascii')
        except UnicodeDecodeError:
            raise MalformedArtifactError("Encoding name is not ASCII") from None
        pos += name_len

        original_size, crc32 = HEADER_TRAILER.unpack_from(data, pos)
        pos += HEADER_TRAILER.size

        return encoding, original_size, crc32, pos

    @staticmethod
    def _read_frequencies(data: bytes, pos: int) -> Tuple[Dict[str, int], int]:
        if pos + 4 > len(data):
            raise MalformedArtifactError("Truncated artifact: cannot read table size")

        entry_count = struct.unpack_from('<I', data, pos)[0]
        pos += 4

        if entry_count == 0:
            raise MalformedArtifactError("Empty frequency table")

        if pos + entry_count * TABLE_ENTRY.size > len(data):
            raise MalformedArtifactError("Truncated artifact: frequency table")

        frequencies: Dict[str, int] = {}
        for _ in range(entry_count):
            code_point, count = TABLE_ENTRY.unpack_from(data, pos)
            pos += TABLE_ENTRY.size

            if code_point > MAX_CODE_POINT:
                raise MalformedArtifactError(f"Invalid code point: {code_point:#x}")
            if code_point in SURROGATES:
                raise MalformedArtifactError(f"Surrogate code point: {code_point:#x}")
            if count == 0:
                raise MalformedArtifactError(f"Zero frequency for code point {code_point:#x}")

            symbol = chr(code_point)
            if symbol in frequencies:
                raise MalformedArtifactError(f"Duplicate code point: {code_point:#x}")
            frequencies[symbol] = count

        return frequencies, pos


def calculate_crc32(data: bytes) -> int:
    return zlib.crc32(data) & 0xffffffff


def verify_integrity(artifact: HuffmanArtifact, decoded_data: bytes) -> bool:
    if len(decoded_data) != artifact.original_size:
        return False

    return calculate_crc32(decoded_data) == artifact.crc32

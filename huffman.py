"""
Реализует статическое кодирование Хаффмана для текста.
Символ - один символ декодированного текста, частые символы
получают более короткие коды.

Дерево не сохраняется: распаковка заново строит его по таблице частот,
поэтому порядок слияний обязан быть полностью детерминированным.
"""

import heapq
from collections import Counter
from typing import Dict, List, Optional

from artifact import HuffmanArtifact, DEFAULT_ENCODING
from errors import EmptyInputError, MalformedArtifactError, DecodingInconsistencyError


# Меньше любой кодовой точки: внутренние узлы извлекаются раньше листьев
INTERNAL_TIE_BREAK = -1


class HuffmanNode:
    def __init__(self, symbol: Optional[str] = None, freq: int = 0,
                 left: Optional['HuffmanNode'] = None,
                 right: Optional['HuffmanNode'] = None,
                 order: int = 0):
        self.symbol = symbol
        self.freq = freq
        self.left = left
        self.right = right
        # порядковый номер слияния, различает внутренние узлы с равной частотой
        self.order = order

    @property
    def is_leaf(self) -> bool:
        return self.symbol is not None

    def sort_key(self):
        if self.symbol is None:
            return (self.freq, INTERNAL_TIE_BREAK, self.order)
        return (self.freq, ord(self.symbol), 0)

    def __lt__(self, other):
        return self.sort_key() < other.sort_key()

    def __eq__(self, other):
        if not isinstance(other, HuffmanNode):
            return NotImplemented
        return (self.symbol == other.symbol and
                self.freq == other.freq and
                self.left == other.left and
                self.right == other.right)

    # сравнение структурное, узлы изменяемы
    __hash__ = None

    def __repr__(self):
        if self.is_leaf:
            return f"Leaf({self.symbol!r}, {self.freq})"
        return f"Node({self.freq}, {self.left!r}, {self.right!r})"


def build_frequency_table(text: str) -> Dict[str, int]:
    return dict(Counter(text))


class HuffmanTree:
    def __init__(self):
        self.root: Optional[HuffmanNode] = None
        self.codes: Dict[str, str] = {}

    def build(self, frequencies: Dict[str, int]):
        if not frequencies:
            raise EmptyInputError("Cannot build a Huffman tree from an empty frequency table")

        heap = [HuffmanNode(symbol=ch, freq=freq)
                for ch, freq in frequencies.items()]
        heapq.heapify(heap)

        if len(heap) == 1:
            node = heapq.heappop(heap)
            self.root = HuffmanNode(freq=node.freq, left=node)
        else:
            merges = 0
            while len(heap) > 1:
                left = heapq.heappop(heap)
                right = heapq.heappop(heap)

                merges += 1
                parent = HuffmanNode(freq=left.freq + right.freq,
                                     left=left, right=right, order=merges)
                heapq.heappush(heap, parent)

            self.root = heap[0]

        self._generate_codes()

    def _generate_codes(self):
        self.codes.clear()

        if not self.root:
            return

        def traverse(node: Optional[HuffmanNode], code: str):
            if node is None:
                return

            if node.is_leaf:
                self.codes[node.symbol] = code if code else '0'
                return

            traverse(node.left, code + '0')
            traverse(node.right, code + '1')

        traverse(self.root, '')


class BitStream:
    def __init__(self):
        self.bits: List[int] = []

    def __len__(self):
        return len(self.bits)

    def write_bit(self, bit: int):
        self.bits.append(1 if bit else 0)

    def write_bits(self, code: str):
        for bit in code:
            self.write_bit(bit == '1')

    def to_bytes(self) -> bytes:
        output = bytearray()

        for i in range(0, len(self.bits), 8):
            chunk = self.bits[i:i+8]
            byte = 0
            for bit in chunk:
                byte = (byte << 1) | bit
            # неполный последний байт дополняется нулями справа
            byte <<= 8 - len(chunk)
            output.append(byte)

        return bytes(output)

    @staticmethod
    def from_bytes(data: bytes, bit_count: int) -> 'BitStream':
        if bit_count < 0 or bit_count > len(data) * 8:
            raise MalformedArtifactError(
                f"Bit count {bit_count} does not fit into {len(data)} packed bytes"
            )

        stream = BitStream()

        for byte in data:
            for j in range(7, -1, -1):
                stream.bits.append((byte >> j) & 1)

        del stream.bits[bit_count:]

        return stream


class HuffmanEncoder:
    @staticmethod
    def encode(text: str, encoding: str = DEFAULT_ENCODING) -> HuffmanArtifact:
        if not text:
            raise EmptyInputError("Nothing to compress: input contains no symbols")

        frequencies = build_frequency_table(text)
        tree = HuffmanTree()
        tree.build(frequencies)

        bitstream = BitStream()
        for ch in text:
            bitstream.write_bits(tree.codes[ch])

        return HuffmanArtifact(
            frequencies=frequencies,
            bit_count=len(bitstream),
            packed=bitstream.to_bytes(),
            encoding=encoding
        )

    @staticmethod
    def decode(artifact: HuffmanArtifact) -> str:
        if not artifact.frequencies:
            raise MalformedArtifactError("Artifact has an empty frequency table")

        bitstream = BitStream.from_bytes(artifact.packed, artifact.bit_count)

        tree = HuffmanTree()
        tree.build(artifact.frequencies)
        root = tree.root
        assert not root.is_leaf, "Huffman tree root must be an internal node"

        output: List[str] = []
        current = root

        for pos, bit in enumerate(bitstream.bits):
            current = current.right if bit else current.left

            if current is None:
                raise DecodingInconsistencyError(
                    f"Bit {pos} leads to an absent branch of the Huffman tree"
                )

            if current.is_leaf:
                output.append(current.symbol)
                current = root

        if current is not root:
            raise DecodingInconsistencyError("Bit stream ends in the middle of a codeword")

        if len(output) != artifact.symbol_count:
            raise DecodingInconsistencyError(
                f"Decoded {len(output)} symbols, frequency table expects {artifact.symbol_count}"
            )

        return ''.join(output)


import io
import os
import random
import shutil
import struct
import sys
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout

from artifact import ArtifactFormat, HuffmanArtifact, calculate_crc32, verify_integrity
from compressor import CompressionSummary, TextCompressor
from errors import (DecodingInconsistencyError, EmptyInputError, LossyEncodingError,
                    MalformedArtifactError)
from huffman import (BitStream, HuffmanEncoder, HuffmanNode, HuffmanTree,
                     build_frequency_table)
import main as cli


def build_tree(frequencies):
    tree = HuffmanTree()
    tree.build(frequencies)
    return tree


class TestFrequencyTable(unittest.TestCase):
    def test_counts_characters(self):
        self.assertEqual(build_frequency_table("abracadabra"),
                         {'a': 5, 'b': 2, 'r': 2, 'c': 1, 'd': 1})

    def test_empty_text(self):
        self.assertEqual(build_frequency_table(""), {})

    def test_non_ascii(self):
        self.assertEqual(build_frequency_table("ёжё"), {'ё': 2, 'ж': 1})


class TestHuffmanTree(unittest.TestCase):
    def test_two_symbols_smaller_frequency_goes_left(self):
        tree = build_tree({'a': 3, 'b': 1})
        self.assertEqual(tree.root.freq, 4)
        self.assertEqual(tree.root.left.symbol, 'b')
        self.assertEqual(tree.root.right.symbol, 'a')
        self.assertEqual(tree.codes, {'b': '0', 'a': '1'})

    def test_equal_leaves_ordered_by_code_point(self):
        tree = build_tree({'b': 5, 'a': 5})
        self.assertEqual(tree.codes, {'a': '0', 'b': '1'})

    def test_internal_node_extracted_before_equal_leaf(self):
        tree = build_tree({'c': 2, 'a': 1, 'b': 1})
        self.assertFalse(tree.root.left.is_leaf)
        self.assertEqual(tree.root.right.symbol, 'c')
        self.assertEqual(tree.codes, {'a': '00', 'b': '01', 'c': '1'})

    def test_internal_nodes_with_equal_frequency_keep_merge_order(self):
        tree = build_tree({'d': 1, 'c': 1, 'b': 1, 'a': 1})
        self.assertEqual(tree.codes, {'a': '00', 'b': '01', 'c': '10', 'd': '11'})

    def test_internal_node_before_nul_leaf(self):
        tree = build_tree({'\0': 2, 'x': 1, 'y': 1})
        self.assertEqual(tree.codes, {'x': '00', 'y': '01', '\0': '1'})

    def test_reordered_table_builds_identical_tree(self):
        frequencies = build_frequency_table("the quick brown fox jumps over the lazy dog" * 3)
        items = list(frequencies.items())

        reference = build_tree(dict(items))

        rng = random.Random(7)
        for _ in range(10):
            rng.shuffle(items)
            tree = build_tree(dict(items))
            self.assertEqual(tree.root, reference.root)
            self.assertEqual(tree.codes, reference.codes)

    def test_single_symbol_is_wrapped(self):
        tree = build_tree({'z': 7})
        self.assertFalse(tree.root.is_leaf)
        self.assertEqual(tree.root.freq, 7)
        self.assertEqual(tree.root.left.symbol, 'z')
        self.assertIsNone(tree.root.right)
        self.assertEqual(tree.codes, {'z': '0'})

    def test_internal_frequency_is_sum_of_children(self):
        tree = build_tree(build_frequency_table("mississippi river"))

        def check(node):
            if node is None or node.is_leaf:
                return
            expected = node.left.freq + (node.right.freq if node.right else 0)
            self.assertEqual(node.freq, expected)
            check(node.left)
            check(node.right)

        check(tree.root)
        self.assertEqual(tree.root.freq, len("mississippi river"))

    def test_prefix_free_codes(self):
        tree = build_tree(build_frequency_table("Lorem ipsum dolor sit amet, consectetur"))
        codes = list(tree.codes.values())
        for i, first in enumerate(codes):
            for j, second in enumerate(codes):
                if i != j:
                    self.assertFalse(second.startswith(first), f"{first} is a prefix of {second}")

    def test_empty_table(self):
        with self.assertRaises(EmptyInputError):
            HuffmanTree().build({})

    def test_nodes_are_unhashable(self):
        with self.assertRaises(TypeError):
            hash(HuffmanNode('a', 1))

    def test_node_ordering(self):
        leaf = HuffmanNode(symbol='a', freq=3)
        internal = HuffmanNode(freq=3, left=HuffmanNode('b', 1), right=HuffmanNode('c', 2))
        self.assertLess(internal, leaf)
        self.assertLess(HuffmanNode('b', 2), leaf)


class TestBitStream(unittest.TestCase):
    def test_pack_msb_first_with_zero_padding(self):
        stream = BitStream()
        stream.write_bits('101')
        self.assertEqual(len(stream), 3)
        self.assertEqual(stream.to_bytes(), b'\xa0')

    def test_pack_full_bytes(self):
        stream = BitStream()
        stream.write_bits('1111000000001111')
        self.assertEqual(stream.to_bytes(), b'\xf0\x0f')

    def test_pack_empty(self):
        self.assertEqual(BitStream().to_bytes(), b'')

    def test_packed_length(self):
        for count in range(1, 20):
            stream = BitStream()
            stream.write_bits('1' * count)
            self.assertEqual(len(stream.to_bytes()), (count + 7) // 8)

    def test_unpack_drops_padding(self):
        stream = BitStream.from_bytes(b'\xa0', 3)
        self.assertEqual(stream.bits, [1, 0, 1])

    def test_unpack_multiple_bytes(self):
        stream = BitStream.from_bytes(b'\x80\x01', 16)
        self.assertEqual(stream.bits, [1] + [0] * 14 + [1])

    def test_unpack_too_many_bits(self):
        with self.assertRaises(MalformedArtifactError):
            BitStream.from_bytes(b'\xff', 9)

    def test_unpack_negative_bit_count(self):
        with self.assertRaises(MalformedArtifactError):
            BitStream.from_bytes(b'\xff', -1)


class TestHuffmanEncoding(unittest.TestCase):
    def test_aaab(self):
        artifact = HuffmanEncoder.encode("aaab")
        self.assertEqual(artifact.frequencies, {'a': 3, 'b': 1})
        self.assertEqual(artifact.bit_count, 4)
        self.assertEqual(artifact.packed, bytes([0b11100000]))
        self.assertEqual(HuffmanEncoder.decode(artifact), "aaab")

    def test_single_symbol(self):
        artifact = HuffmanEncoder.encode("z" * 10)
        self.assertEqual(artifact.bit_count, 10)
        self.assertEqual(artifact.packed, b'\x00\x00')
        self.assertEqual(HuffmanEncoder.decode(artifact), "z" * 10)

    def test_bit_count_is_weighted_code_length(self):
        text = "she sells sea shells by the sea shore"
        artifact = HuffmanEncoder.encode(text)
        codes = build_tree(artifact.frequencies).codes
        expected = sum(freq * len(codes[ch]) for ch, freq in artifact.frequencies.items())
        self.assertEqual(artifact.bit_count, expected)

    def test_empty_input(self):
        with self.assertRaises(EmptyInputError):
            HuffmanEncoder.encode("")

    def test_unicode_text(self):
        text = "Съешь же ещё этих мягких французских булок 🍞, да выпей чаю.\n"
        self.assertEqual(HuffmanEncoder.decode(HuffmanEncoder.encode(text)), text)

    def test_random_text(self):
        rng = random.Random(42)
        alphabet = "abcdefgh \n"
        weights = [40, 20, 10, 8, 6, 4, 2, 1, 15, 3]
        text = ''.join(rng.choices(alphabet, weights=weights, k=5000))
        self.assertEqual(HuffmanEncoder.decode(HuffmanEncoder.encode(text)), text)

    def test_serialized_round_trip(self):
        text = "The quick brown fox jumps over the lazy dog"
        data = ArtifactFormat.serialize(HuffmanEncoder.encode(text))
        self.assertEqual(HuffmanEncoder.decode(ArtifactFormat.deserialize(data)), text)

    def test_large_text(self):
        text = "Lorem ipsum dolor sit amet " * 200
        compressed = ArtifactFormat.serialize(HuffmanEncoder.encode(text))
        self.assertLess(len(compressed), len(text.encode('utf-8')))
        self.assertEqual(HuffmanEncoder.decode(ArtifactFormat.deserialize(compressed)), text)


class TestDecoderErrors(unittest.TestCase):
    def test_empty_frequency_table(self):
        with self.assertRaises(MalformedArtifactError):
            HuffmanEncoder.decode(HuffmanArtifact(frequencies={}, bit_count=0, packed=b''))

    def test_bit_count_exceeds_packed_bytes(self):
        artifact = HuffmanArtifact(frequencies={'a': 3, 'b': 1}, bit_count=9, packed=b'\xe0')
        with self.assertRaises(MalformedArtifactError):
            HuffmanEncoder.decode(artifact)

    def test_negative_bit_count(self):
        artifact = HuffmanArtifact(frequencies={'a': 3, 'b': 1}, bit_count=-4, packed=b'\xe0')
        with self.assertRaises(MalformedArtifactError):
            HuffmanEncoder.decode(artifact)

    def test_absent_branch(self):
        artifact = HuffmanArtifact(frequencies={'x': 2}, bit_count=2, packed=b'\x40')
        with self.assertRaises(DecodingInconsistencyError):
            HuffmanEncoder.decode(artifact)

    def test_bits_end_mid_codeword(self):
        artifact = HuffmanArtifact(frequencies={'a': 1, 'b': 1, 'c': 2}, bit_count=1, packed=b'\x00')
        with self.assertRaises(DecodingInconsistencyError):
            HuffmanEncoder.decode(artifact)

    def test_symbol_count_mismatch(self):
        artifact = HuffmanArtifact(frequencies={'a': 3, 'b': 1}, bit_count=2, packed=b'\xc0')
        with self.assertRaises(DecodingInconsistencyError):
            HuffmanEncoder.decode(artifact)


class TestArtifactFormat(unittest.TestCase):
    def make_artifact(self, text="hello world", encoding='utf-8'):
        artifact = HuffmanEncoder.encode(text, encoding)
        data = text.encode(encoding)
        artifact.original_size = len(data)
        artifact.crc32 = calculate_crc32(data)
        return artifact

    def test_serialize_and_read(self):
        artifact = self.make_artifact()
        restored = ArtifactFormat.deserialize(ArtifactFormat.serialize(artifact))
        self.assertEqual(restored, artifact)

    def test_layout(self):
        artifact = HuffmanEncoder.encode("aaab")
        data = ArtifactFormat.serialize(artifact)

        self.assertTrue(data.startswith(b'HUFT\x01\x05utf-8'))
        body = data[4 + 1 + 1 + 5 + 12:]
        self.assertEqual(body[:4], struct.pack('<I', 2))
        self.assertEqual(body[4:12], struct.pack('<II', ord('a'), 3))
        self.assertEqual(body[12:20], struct.pack('<II', ord('b'), 1))
        self.assertEqual(body[20:28], struct.pack('<Q', 4))
        self.assertEqual(body[28:], b'\xe0')

    def test_invalid_magic(self):
        data = bytearray(ArtifactFormat.serialize(self.make_artifact()))
        data[:4] = b'NOPE'
        with self.assertRaises(MalformedArtifactError):
            ArtifactFormat.deserialize(bytes(data))

    def test_unsupported_version(self):
        data = bytearray(ArtifactFormat.serialize(self.make_artifact()))
        data[4] = 99
        with self.assertRaises(MalformedArtifactError):
            ArtifactFormat.deserialize(bytes(data))

    def test_too_small(self):
        with self.assertRaises(MalformedArtifactError):
            ArtifactFormat.deserialize(b'HUF')

    def test_truncated(self):
        data = ArtifactFormat.serialize(self.make_artifact())
        for cut in (1, 5, 20, len(data) - 10):
            with self.assertRaises(MalformedArtifactError):
                ArtifactFormat.deserialize(data[:-cut])

    def test_trailing_data(self):
        data = ArtifactFormat.serialize(self.make_artifact())
        with self.assertRaises(MalformedArtifactError):
            ArtifactFormat.deserialize(data + b'\x00')

    def test_zero_frequency(self):
        artifact = HuffmanArtifact(frequencies={'a': 0, 'b': 1}, bit_count=1, packed=b'\x80')
        with self.assertRaises(MalformedArtifactError):
            ArtifactFormat.deserialize(ArtifactFormat.serialize(artifact))

    def test_empty_table(self):
        artifact = HuffmanArtifact(frequencies={}, bit_count=0, packed=b'')
        with self.assertRaises(MalformedArtifactError):
            ArtifactFormat.deserialize(ArtifactFormat.serialize(artifact))

    def test_duplicate_code_point(self):
        data = bytearray(ArtifactFormat.serialize(HuffmanEncoder.encode("ab")))
        second_entry = 4 + 1 + 1 + 5 + 12 + 4 + 8
        data[second_entry:second_entry + 4] = struct.pack('<I', ord('a'))
        with self.assertRaises(MalformedArtifactError):
            ArtifactFormat.deserialize(bytes(data))

    def test_invalid_code_point(self):
        data = bytearray(ArtifactFormat.serialize(HuffmanEncoder.encode("ab")))
        second_entry = 4 + 1 + 1 + 5 + 12 + 4 + 8
        data[second_entry:second_entry + 4] = struct.pack('<I', 0x110000)
        with self.assertRaises(MalformedArtifactError):
            ArtifactFormat.deserialize(bytes(data))

    def test_surrogate_code_point(self):
        artifact = HuffmanArtifact(frequencies={'\ud800': 1, 'b': 1}, bit_count=2, packed=b'\x40')
        with self.assertRaises(MalformedArtifactError):
            ArtifactFormat.deserialize(ArtifactFormat.serialize(artifact))

    def test_malformed_is_value_error(self):
        with self.assertRaises(ValueError):
            ArtifactFormat.deserialize(b'garbage data here')

    def test_crc32_verification(self):
        artifact = self.make_artifact("Test data")
        self.assertTrue(verify_integrity(artifact, b"Test data"))
        self.assertFalse(verify_integrity(artifact, b"Test dada"))
        self.assertFalse(verify_integrity(artifact, b"Test data!"))


class TestTextCompressor(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.compressor = TextCompressor(verbose=False)

    def tearDown(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def path(self, name):
        return os.path.join(self.temp_dir, name)

    def write(self, name, data: bytes):
        with open(self.path(name), 'wb') as f:
            f.write(data)
        return self.path(name)

    def read(self, name) -> bytes:
        with open(self.path(name), 'rb') as f:
            return f.read()

    def round_trip(self, data: bytes, encoding: str):
        source = self.write("input.txt", data)
        compressor = TextCompressor(encoding=encoding, verbose=False)
        compressor.compress_file(source, self.path("output.huf"))
        compressor.decompress_file(self.path("output.huf"), self.path("restored.txt"))
        return self.read("restored.txt")

    def test_round_trip_encodings(self):
        samples = {
            'utf-8': "Привет, мир! Hello, world! 你好 🌍\n" * 20,
            'utf-16': "Быстрая коричневая лиса\n" * 30,
            'latin-1': "Café déjà vu, naïve façade\n" * 25,
            'cp1251': "Съешь же ещё этих мягких французских булок\n" * 15,
        }
        for encoding, text in samples.items():
            with self.subTest(encoding=encoding):
                data = text.encode(encoding)
                self.assertEqual(self.round_trip(data, encoding), data)

    def test_round_trip_keeps_line_endings(self):
        data = b"line one\r\nline two\rline three\n\n"
        self.assertEqual(self.round_trip(data, 'utf-8'), data)

    def test_summary(self):
        source = self.write("aaab.txt", b"aaab")
        summary = self.compressor.compress_file(source, self.path("aaab.huf"))

        self.assertIsInstance(summary, CompressionSummary)
        self.assertEqual(summary.original_size, 4)
        self.assertEqual(summary.original_bits, 32)
        self.assertEqual(summary.encoded_bits, 4)
        self.assertEqual(summary.encoded_size, 1)
        self.assertEqual(summary.distinct_symbols, 2)
        self.assertEqual(summary.artifact_size, os.path.getsize(self.path("aaab.huf")))
        self.assertAlmostEqual(summary.compression_ratio, 87.5)

    def test_summary_printed_when_verbose(self):
        source = self.write("text.txt", b"Hello World! " * 100)
        output = io.StringIO()
        with redirect_stdout(output):
            TextCompressor().compress_file(source, self.path("text.huf"))
        self.assertIn("Compression Summary", output.getvalue())
        self.assertIn("Compression ratio", output.getvalue())

    def test_empty_file_writes_nothing(self):
        source = self.write("empty.txt", b"")
        with self.assertRaises(EmptyInputError):
            self.compressor.compress_file(source, self.path("empty.huf"))
        self.assertFalse(os.path.exists(self.path("empty.huf")))

    def test_crc_mismatch_writes_nothing(self):
        source = self.write("text.txt", b"Content of file\n" * 50)
        self.compressor.compress_file(source, self.path("text.huf"))

        artifact = TextCompressor.load_artifact(self.path("text.huf"))
        artifact.crc32 ^= 1
        self.write("broken.huf", ArtifactFormat.serialize(artifact))

        with self.assertRaises(DecodingInconsistencyError):
            self.compressor.decompress_file(self.path("broken.huf"), self.path("restored.txt"))
        self.assertFalse(os.path.exists(self.path("restored.txt")))

    def test_malformed_file_writes_nothing(self):
        self.write("garbage.huf", b"not an artifact at all")
        with self.assertRaises(MalformedArtifactError):
            self.compressor.decompress_file(self.path("garbage.huf"), self.path("restored.txt"))
        self.assertFalse(os.path.exists(self.path("restored.txt")))

    def test_unknown_encoding_in_artifact(self):
        artifact = HuffmanEncoder.encode("abc", encoding='no-such-codec')
        self.write("odd.huf", ArtifactFormat.serialize(artifact))
        with self.assertRaises(MalformedArtifactError):
            self.compressor.decompress_file(self.path("odd.huf"), self.path("restored.txt"))

    def test_utf16_without_bom_writes_nothing(self):
        source = self.write("plain.txt", "abc".encode('utf-16-le'))
        compressor = TextCompressor(encoding='utf-16', verbose=False)
        with self.assertRaises(LossyEncodingError):
            compressor.compress_file(source, self.path("plain.huf"))
        self.assertFalse(os.path.exists(self.path("plain.huf")))

    def test_utf16_big_endian_bom_writes_nothing(self):
        source = self.write("be.txt", b'\xfe\xff' + "Привет\n".encode('utf-16-be'))
        compressor = TextCompressor(encoding='utf-16', verbose=False)
        with self.assertRaises(LossyEncodingError):
            compressor.compress_file(source, self.path("be.huf"))
        self.assertFalse(os.path.exists(self.path("be.huf")))

    def test_unencodable_symbol_writes_nothing(self):
        artifact = HuffmanEncoder.encode("Жаба", encoding='latin-1')
        self.write("cyrillic.huf", ArtifactFormat.serialize(artifact))
        with self.assertRaises(DecodingInconsistencyError):
            self.compressor.decompress_file(self.path("cyrillic.huf"), self.path("restored.txt"))
        self.assertFalse(os.path.exists(self.path("restored.txt")))

    def test_unknown_encoding_option(self):
        with self.assertRaises(LookupError):
            TextCompressor(encoding='no-such-codec')

    def test_encoding_name_normalized(self):
        self.assertEqual(TextCompressor(encoding='UTF8').encoding, 'utf-8')

    def test_undecodable_input(self):
        source = self.write("binary.bin", b"\xff\xfe\xfa\x00\x81")
        with self.assertRaises(UnicodeDecodeError):
            self.compressor.compress_file(source, self.path("binary.huf"))

    def test_inspect_file(self):
        source = self.write("aaab.txt", b"aaab")
        self.compressor.compress_file(source, self.path("aaab.huf"))

        output = io.StringIO()
        with redirect_stdout(output):
            artifact = self.compressor.inspect_file(self.path("aaab.huf"))

        self.assertEqual(artifact.frequencies, {'a': 3, 'b': 1})
        self.assertIn("Distinct symbols:  2", output.getvalue())
        self.assertIn("'a'", output.getvalue())


class TestCommandLine(unittest.TestCase):
    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def run_cli(self, *argv):
        stdout, stderr = io.StringIO(), io.StringIO()
        with redirect_stdout(stdout), redirect_stderr(stderr):
            code = cli.main(list(argv))
        return code, stdout.getvalue(), stderr.getvalue()

    def test_compress_and_decompress(self):
        source = os.path.join(self.temp_dir, "notes.txt")
        packed = os.path.join(self.temp_dir, "notes.huf")
        restored = os.path.join(self.temp_dir, "restored.txt")

        with open(source, 'w', encoding='utf-8') as f:
            f.write("Hello, world!\n" * 100)

        code, stdout, _ = self.run_cli('compress', source, packed)
        self.assertEqual(code, cli.EXIT_OK)
        self.assertIn("Compression Summary", stdout)

        code, _, _ = self.run_cli('decompress', packed, restored, '--quiet')
        self.assertEqual(code, cli.EXIT_OK)

        with open(source, 'rb') as f:
            original = f.read()
        with open(restored, 'rb') as f:
            self.assertEqual(f.read(), original)

        code, stdout, _ = self.run_cli('info', packed, '--top', '3')
        self.assertEqual(code, cli.EXIT_OK)
        self.assertIn("Encoded bits", stdout)

    def test_empty_input(self):
        source = os.path.join(self.temp_dir, "empty.txt")
        packed = os.path.join(self.temp_dir, "empty.huf")
        open(source, 'wb').close()

        code, _, stderr = self.run_cli('compress', source, packed)
        self.assertEqual(code, cli.EXIT_EMPTY_INPUT)
        self.assertIn("EMPTY FILE", stderr)
        self.assertFalse(os.path.exists(packed))

    def test_error_reported(self):
        source = os.path.join(self.temp_dir, "garbage.huf")
        with open(source, 'wb') as f:
            f.write(b"garbage")

        code, _, stderr = self.run_cli('decompress', source, os.path.join(self.temp_dir, "out.txt"))
        self.assertEqual(code, cli.EXIT_ERROR)
        self.assertIn("Error:", stderr)

    def test_missing_file(self):
        code, _, stderr = self.run_cli('compress', os.path.join(self.temp_dir, "missing.txt"),
                                       os.path.join(self.temp_dir, "out.huf"))
        self.assertEqual(code, cli.EXIT_ERROR)
        self.assertIn("Error:", stderr)

    def test_lossy_encoding_reported(self):
        source = os.path.join(self.temp_dir, "plain.txt")
        packed = os.path.join(self.temp_dir, "plain.huf")
        with open(source, 'wb') as f:
            f.write("abc".encode('utf-16-le'))

        code, _, stderr = self.run_cli('compress', source, packed, '--encoding', 'utf-16')
        self.assertEqual(code, cli.EXIT_ERROR)
        self.assertIn("round-trip", stderr)
        self.assertFalse(os.path.exists(packed))

    def test_no_command_prints_help(self):
        code, stdout, _ = self.run_cli()
        self.assertEqual(code, cli.EXIT_OK)
        self.assertIn("compress", stdout)


def run_tests():
    loader = unittest.TestLoader()
    suite = unittest.TestSuite()

    suite.addTests(loader.loadTestsFromTestCase(TestFrequencyTable))
    suite.addTests(loader.loadTestsFromTestCase(TestHuffmanTree))
    suite.addTests(loader.loadTestsFromTestCase(TestBitStream))
    suite.addTests(loader.loadTestsFromTestCase(TestHuffmanEncoding))
    suite.addTests(loader.loadTestsFromTestCase(TestDecoderErrors))
    suite.addTests(loader.loadTestsFromTestCase(TestArtifactFormat))
    suite.addTests(loader.loadTestsFromTestCase(TestTextCompressor))
    suite.addTests(loader.loadTestsFromTestCase(TestCommandLine))

    runner = unittest.TextTestRunner(verbosity=2)
    result = runner.run(suite)

    return 0 if result.wasSuccessful() else 1


if __name__ == '__main__':
    sys.exit(run_tests())

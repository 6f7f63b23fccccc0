"""
Командная строка для компрессора Хаффмана.
"""

import argparse
import sys

from compressor import TextCompressor
from artifact import DEFAULT_ENCODING
from errors import EmptyInputError


EXIT_OK = 0
EXIT_ERROR = 1
EXIT_EMPTY_INPUT = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Static Huffman text compressor',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py compress notes.txt notes.huf
  python main.py compress cyrillic.txt cyrillic.huf --encoding cp1251
  python main.py decompress notes.huf notes_restored.txt
  python main.py info notes.huf
        """
    )

    subparsers = parser.add_subparsers(dest='command', help='Command')

    compress_parser = subparsers.add_parser('compress', help='Compress a text file')
    compress_parser.add_argument('input', help='Text file to compress')
    compress_parser.add_argument('output', help='Compressed file path')
    compress_parser.add_argument('-e', '--encoding', default=DEFAULT_ENCODING,
                                 help=f'Text encoding of the input (default: {DEFAULT_ENCODING})')
    compress_parser.add_argument('-q', '--quiet', action='store_true', help='Do not print the summary')

    decompress_parser = subparsers.add_parser('decompress', help='Decompress a file')
    decompress_parser.add_argument('input', help='Compressed file path')
    decompress_parser.add_argument('output', help='Restored text file path')
    decompress_parser.add_argument('-q', '--quiet', action='store_true', help='Do not print progress')

    info_parser = subparsers.add_parser('info', help='Show compressed file details')
    info_parser.add_argument('artifact', help='Compressed file path')
    info_parser.add_argument('-n', '--top', type=int, default=None, help='Show only the N most frequent symbols')

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return EXIT_OK

    try:
        if args.command == 'compress':
            compressor = TextCompressor(encoding=args.encoding, verbose=not args.quiet)
            compressor.compress_file(args.input, args.output)

        elif args.command == 'decompress':
            compressor = TextCompressor(verbose=not args.quiet)
            compressor.decompress_file(args.input, args.output)

        elif args.command == 'info':
            TextCompressor().inspect_file(args.artifact, limit=args.top)

    except EmptyInputError:
        print(f"EMPTY FILE: {args.input}, nothing to compress", file=sys.stderr)
        return EXIT_EMPTY_INPUT

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR

    return EXIT_OK


if __name__ == '__main__':
    sys.exit(main())

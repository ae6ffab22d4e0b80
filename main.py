"""
Scheme front-end - Main Entry Point
Reads a source file and prints its tokens, data or syntax tree with
rendered diagnostics
"""

import sys
import argparse
from typing import List, Optional

from datum import Datum, LIST, datumize_recover
from error_handling import SchemeError
from lexing import tokenize_recover
from parsing import create_debug_parser, create_parser
from syntax_tree import pretty_print_program


VERSION = "scheme-parser 0.1.0"


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      description='Scheme front-end - tokenize and parse Scheme source into a syntax tree',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s program.scm              # Parse and show the syntax tree
  %(prog)s --token program.scm      # Show the token stream
  %(prog)s --datum program.scm      # Show the datum tree before expansion
  %(prog)s -n program.scm           # Diagnostics without colour
        """
  )

  parser.add_argument(
      'file_name',
      help='Scheme source file to parse'
  )

  parser.add_argument(
      '-t', '--token',
      action='store_true',
      help='Tokenize only and show the tokens'
  )

  parser.add_argument(
      '-d', '--datum',
      action='store_true',
      help='Read data only and show the datum tree'
  )

  parser.add_argument(
      '-n', '--non-colorful',
      action='store_true',
      help='Render diagnostics without colour'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Enable debug output for all stages'
  )

  parser.add_argument(
      '--version',
      action='version',
      version=VERSION
  )

  return parser


def format_datum(datum: Datum, source: str, indent: int = 0) -> str:
  """Pretty print a datum tree with the source text of each leaf"""
  prefix = "  " * indent
  if datum.type == LIST:
    result = f"{prefix}LIST\n"
    for child in datum.value:
      result += format_datum(child, source, indent + 1)
    return result
  return f"{prefix}{datum.type}({datum})  {datum.span.text(source)!r}\n"


def report(error: Optional[SchemeError], colorful: bool) -> bool:
  """Print a rendered error, returning True when there was one"""
  if error is None:
    return False
  print(error.with_color(colorful), end="")
  return True


def run(args: argparse.Namespace, source: str) -> int:
  colorful = not args.non_colorful

  tokens, error = tokenize_recover(source, args.file_name, args.debug)
  if args.token or error is not None:
    for token in tokens:
      print(f"{token.type:<9} {str(token):<16} {token.span.start}..{token.span.end}")
    return 1 if report(error, colorful) else 0

  if args.datum:
    data, error = datumize_recover(tokens, source, args.file_name)
    for datum in data:
      print(format_datum(datum, source), end="")
    return 1 if report(error, colorful) else 0

  parser = create_debug_parser() if args.debug else create_parser()
  program, error = parser.parse_tokens_recover(tokens, source, args.file_name)
  print(pretty_print_program(program, source), end="")
  return 1 if report(error, colorful) else 0


def main(argv: Optional[List[str]] = None) -> None:
  """Main entry point"""
  args = create_arg_parser().parse_args(argv)

  try:
    with open(args.file_name, 'r', encoding='utf-8') as f:
      source = f.read()
  except FileNotFoundError:
    print(f"Error: Source file '{args.file_name}' not found")
    print(f"  Hint: Check the file path and make sure the file exists")
    sys.exit(1)
  except PermissionError:
    print(f"Error: Permission denied reading '{args.file_name}'")
    sys.exit(1)
  except UnicodeDecodeError as e:
    print(f"Error: Cannot decode file '{args.file_name}': {e}")
    print(f"  Hint: Make sure the file is a text file with UTF-8 encoding")
    sys.exit(1)

  sys.exit(run(args, source))


if __name__ == "__main__":
  main()

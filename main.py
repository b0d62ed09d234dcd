"""
codeload - Main Entry Point
Tolerantly loads a section document of loosely ordered statements
"""

import sys
import argparse
from typing import List, Optional

from error_handling import CodeLoadError, LoadError
from loader import acquire_source, decode_source, load_text
from options import DEFAULT_OPTIONS, MODES, make_load_options
from splitting import split_statements
from utilities import describe_bindings, format_value


def create_arg_parser() -> argparse.ArgumentParser:
  """Create command line argument parser"""
  parser = argparse.ArgumentParser(
      prog='codeload',
      description='Load a set of statements whose dependencies are unknown, retrying until nothing more resolves',
      formatter_class=argparse.RawDescriptionHelpFormatter,
      epilog="""
Examples:
  %(prog)s defs.pq                        # Resolve a section document
  %(prog)s defs.pq --errors               # Show the statements that never resolved
  %(prog)s defs.pq --split                # Show how the document is split
  %(prog)s https://example.com/defs.pq    # Load over http(s)
  %(prog)s expr.pq --mode Expression      # Evaluate one expression
  %(prog)s defs.pq --workers 4 --debug    # Parallel passes with pass tracing
        """
  )

  parser.add_argument(
      'source',
      help='Path, file:// URL or http(s) URL of the code to load'
  )

  parser.add_argument(
      '--mode',
      choices=MODES,
      default='Section',
      help='Section document of statements, or a single expression (default: Section)'
  )

  parser.add_argument(
      '--errors',
      action='store_true',
      help='Print the statements still failing instead of the resolved values'
  )

  parser.add_argument(
      '--keep-internal',
      action='store_true',
      help="Keep the 'shared ' name of exported bindings next to the plain one"
  )

  parser.add_argument(
      '--workers',
      type=int,
      default=DEFAULT_OPTIONS['workers'],
      help='Evaluate each pass on this many worker actors (default: sequential)'
  )

  parser.add_argument(
      '--max-passes',
      type=int,
      default=None,
      help='Stop after this many passes even if still making progress'
  )

  parser.add_argument(
      '--encoding',
      default=DEFAULT_OPTIONS['encoding'],
      help='Text encoding of the source (default: utf-8)'
  )

  parser.add_argument(
      '--timeout',
      type=float,
      default=DEFAULT_OPTIONS['timeout'],
      help='Timeout in seconds for http(s) sources'
  )

  parser.add_argument(
      '--split',
      action='store_true',
      help='Only split the document and print the statements'
  )

  parser.add_argument(
      '--debug',
      action='store_true',
      help='Enable debug output for all stages'
  )

  parser.add_argument(
      '--version',
      action='version',
      version='codeload 0.1.0'
  )

  return parser


def print_statements(statements: List[str]) -> None:
  for i, statement in enumerate(statements, 1):
    print(f"[{i}] {statement}")


def print_failures(failures) -> None:
  if not failures:
    print("All statements resolved")
    return
  for failure in failures:
    print(f"{failure.statement}")
    for line in str(failure.error).splitlines():
      print(f"  {line}")


def run(argv: Optional[List[str]] = None) -> int:
  """Run the command line; returns the exit status"""
  args = create_arg_parser().parse_args(argv)

  try:
    options = make_load_options({
        'errors': args.errors,
        'shared': not args.keep_internal,
        'workers': args.workers,
        'max_passes': args.max_passes,
        'encoding': args.encoding,
        'timeout': args.timeout,
    })
    text = decode_source(acquire_source(args.source, options['timeout']), options['encoding'])

    if args.split:
      print_statements(split_statements(text))
      return 0

    result = load_text(text, args.mode, options, debug=args.debug)
  except LoadError as e:
    print(f"Error: {e}", file=sys.stderr)
    return 1
  except CodeLoadError as e:
    print(f"Fatal: {e}", file=sys.stderr)
    return 2

  if args.mode == 'Expression':
    print(format_value(result))
  elif args.errors:
    print_failures(result)
  else:
    for line in describe_bindings(result):
      print(line)
  return 0


def main() -> None:
  """Main entry point for codeload"""
  sys.exit(run())


if __name__ == "__main__":
  main()

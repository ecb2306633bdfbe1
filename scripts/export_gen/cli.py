"""
Command line interface

Usage:
    export-gen [INPUT.json ...] [--input-dir DIR] [--output-dir DIR] [options]
"""

import argparse
import logging
import sys
from typing import Optional

from .builder import DEFAULT_THRESHOLD
from .cache import CACHE_FORMAT_VERSION
from .config import DEFAULT_OUTPUT_DIR, GeneratorConfig
from .exceptions import CacheError, GenerationCancelled, NoProcessableUnits
from .generator import EXIT_CANCELLED, EXIT_NO_UNITS, Generator, discover_units


def build_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='export-gen',
        description='Generate sol2 Lua bindings from annotated C++ declaration trees')
    parser.add_argument('inputs', nargs='*',
                        help='Declaration-tree JSON documents, one per translation unit')
    parser.add_argument('--input-dir', default=None,
                        help='Directory searched recursively for *.json unit documents')
    parser.add_argument('--exclude', nargs='+', default=[], metavar='NAME',
                        help='File or directory names to skip')
    parser.add_argument('--output-dir', default=DEFAULT_OUTPUT_DIR,
                        help=f'Output directory (default: {DEFAULT_OUTPUT_DIR})')
    parser.add_argument('--module-name', default='',
                        help='Module name used for output files and the register function')
    parser.add_argument('--namespace', default='',
                        help='Default Lua namespace for declarations without one')
    parser.add_argument('--threshold', type=int, default=DEFAULT_THRESHOLD,
                        help=f'Registration weight above which members are batched '
                             f'(default: {DEFAULT_THRESHOLD})')
    parser.add_argument('--no-incremental', action='store_true',
                        help='Disable the incremental cache')
    parser.add_argument('--force-rebuild', action='store_true',
                        help='Re-extract every unit even if unchanged')
    parser.add_argument('--cache', default=None, metavar='FILE',
                        help=f'Cache store path (format v{CACHE_FORMAT_VERSION}; '
                             'default: inside the output directory)')
    parser.add_argument('-j', '--jobs', type=int, default=1,
                        help='Number of parallel extraction jobs (default: 1)')
    parser.add_argument('--stubs', action='store_true',
                        help='Also write LuaCATS type stubs')
    parser.add_argument('--show-stats', action='store_true',
                        help='Print item statistics')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Verbose output')
    return parser


def config_from_args(args: argparse.Namespace) -> GeneratorConfig:
    return GeneratorConfig(
        module_name=args.module_name,
        default_namespace=args.namespace,
        threshold=args.threshold,
        incremental=not args.no_incremental,
        force_rebuild=args.force_rebuild,
        cache_path=args.cache,
        output_dir=args.output_dir,
        jobs=args.jobs,
        stubs=args.stubs,
        show_stats=args.show_stats,
        verbose=args.verbose,
        excludes=set(args.exclude),
    )


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_argument_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    try:
        config = config_from_args(args)
    except ValueError as e:
        parser.error(str(e))

    paths = discover_units(args.inputs, args.input_dir, config.excludes)
    if not paths:
        print('Error: no input units', file=sys.stderr)
        return EXIT_NO_UNITS

    generator = Generator(config)
    try:
        result = generator.generate(paths)
    except NoProcessableUnits as e:
        print(f'Error: {e}', file=sys.stderr)
        return EXIT_NO_UNITS
    except CacheError as e:
        print(f'Error: {e}', file=sys.stderr)
        return 1
    except (GenerationCancelled, KeyboardInterrupt):
        print('Cancelled', file=sys.stderr)
        return EXIT_CANCELLED
    return result.exit_code


if __name__ == '__main__':
    sys.exit(main())

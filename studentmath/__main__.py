"""
Main entry point for studentmath.

``studentmath analyze`` writes the analysis artifacts for a dataset;
``studentmath serve`` starts the HTTP service.
"""

import argparse
import logging
import sys
from typing import List, Optional

from studentmath.components.config import ConfigManager, read_config_file
from studentmath.data.loader import DatasetValidationError
from studentmath.math.regression import SingularMatrixError

logger = logging.getLogger(__name__)


def setup_logging(level: str = 'INFO') -> None:
    """
    Set up logging.

    Args:
        level: Logging level
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler()
        ]
    )


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command line arguments.

    Returns:
        Parsed arguments
    """
    parser = argparse.ArgumentParser(description='Student skill analytics')

    parser.add_argument(
        '--config',
        help='Path to configuration file (JSON or YAML)'
    )

    parser.add_argument(
        '--log-level',
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Logging level'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    analyze = subparsers.add_parser('analyze', help='Compute and write analysis artifacts')
    analyze.add_argument('--data', help='Path to students .json or .csv')
    analyze.add_argument('--out', help='Directory for the result documents')
    analyze.add_argument('--seed', type=int, help='Seed for persona initialisation')
    analyze.add_argument('--k', type=int, help='Number of personas')
    analyze.add_argument('--iterations', type=int, help='Number of k-means rounds')
    analyze.add_argument(
        '--strict',
        action='store_true',
        help='Fail on a singular regression system instead of approximating'
    )

    serve = subparsers.add_parser('serve', help='Run the HTTP service')
    serve.add_argument('--port', type=int, help='Server port')
    serve.add_argument('--host', help='Server host')

    return parser.parse_args(argv)


def build_overrides(args: argparse.Namespace) -> dict:
    """
    Collect configuration overrides from a config file and the command line.

    Args:
        args: Parsed arguments

    Returns:
        Nested overrides dictionary
    """
    overrides = {}

    if args.config:
        overrides.update(read_config_file(args.config))

    def put(section: str, key: str, value) -> None:
        if value is not None:
            overrides.setdefault(section, {})[key] = value

    if args.command == 'analyze':
        put('data', 'path', args.data)
        put('output', 'dir', args.out)
        put('clustering', 'seed', args.seed)
        put('clustering', 'k', args.k)
        put('clustering', 'iterations', args.iterations)
        if args.strict:
            put('regression', 'strict', True)
    elif args.command == 'serve':
        put('server', 'port', args.port)
        put('server', 'host', args.host)

    return overrides


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Returns:
        Process exit status
    """
    args = parse_args(argv)

    setup_logging(args.log_level)

    try:
        config = ConfigManager.get_config(build_overrides(args))
    except (OSError, ValueError) as e:
        logger.error(f"Could not load configuration: {e}")
        return 1

    if args.command == 'serve':
        from studentmath.components.server import Server
        Server(config).run()
        return 0

    from studentmath.pipeline import run_pipeline

    try:
        run_pipeline(config)
    except (DatasetValidationError, SingularMatrixError, OSError, ValueError) as e:
        logger.error(f"Analysis failed: {e}")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())

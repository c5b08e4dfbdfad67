"""Run the dirshare server.

Usage:
    dirshare /srv/files --bind 0.0.0.0:3000
    python -m dirshare.api /srv/files
"""
from __future__ import annotations

import argparse
import os
import sys

import uvicorn

from ..observability import configure_logging, get_logger
from .app import create_app
from .config import APIConfig, parse_bind_address

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog='dirshare',
        description='Browse, preview and share a directory over HTTP.',
    )
    parser.add_argument(
        'root_dir', nargs='?', default=None,
        help='Directory to serve (default: DIRSHARE_ROOT or current directory)',
    )
    parser.add_argument(
        '-b', '--bind', default=None, metavar='HOST:PORT',
        help='Address to listen on (default: DIRSHARE_HOST:DIRSHARE_PORT or 127.0.0.1:3000)',
    )
    parser.add_argument('--log-level', default=os.environ.get('LOG_LEVEL', 'INFO'))
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(level=args.log_level)

    config = APIConfig.from_env(args.root_dir)
    if args.bind:
        try:
            config.host, config.port = parse_bind_address(args.bind)
        except ValueError as e:
            print(f'Error: {e}', file=sys.stderr)
            return 1

    try:
        app = create_app(config)
    except ValueError as e:
        print(f'Error: {e}', file=sys.stderr)
        return 1

    logger.info('server_starting', root=str(config.root_dir), host=config.host, port=config.port)
    uvicorn.run(app, host=config.host, port=config.port, log_config=None)
    return 0


if __name__ == '__main__':
    raise SystemExit(main())

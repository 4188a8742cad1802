"""Serve the API with uvicorn: ``python -m trade_verifier.api.runner``."""

from __future__ import annotations

import argparse

import uvicorn

from trade_verifier.api.app import app, config
from trade_verifier.logging import get_logger, setup_logging

log = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Trade verifier HTTP API")
    parser.add_argument("--host", default=config.api.host)
    parser.add_argument("--port", type=int, default=config.api.port)
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    setup_logging(level=config.logging.level, log_format=config.logging.format)
    log.info("api_starting", host=args.host, port=args.port, data_source=config.verification.data_source)
    # log_config=None leaves the structlog handler on the root logger in place
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()

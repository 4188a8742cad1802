"""Allow running the monitor as: python -m trade_verifier.monitor [--config path]."""

import argparse

from trade_verifier.monitor.runner import main

parser = argparse.ArgumentParser(description="Active trade monitor")
parser.add_argument("--config", default=None, help="Path to config.yaml")
args = parser.parse_args()
main(config_path=args.config)

from __future__ import annotations

import argparse
import logging
import signal
import threading

from prizeledger.service import SettlementEngine


def main() -> None:
    """Run the draw, trade and round schedulers until interrupted."""
    parser = argparse.ArgumentParser(description="Run the settlement engine.")
    parser.add_argument("--log-level", default="INFO")
    parser.add_argument(
        "--once",
        action="store_true",
        help="run every poll a single time and exit",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    engine = SettlementEngine.from_env()
    if args.once:
        for timer in engine.timers:
            timer.trigger()
        engine.resolver.close()
        return

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    with engine:
        stop.wait()


if __name__ == "__main__":
    main()

"""Row/column speller backend: main entry point.

Launches:
1. FastAPI server (with WebSocket) on the main thread via Uvicorn
2. Speller engine dispatch loop (background thread)
3. Flash timer (background thread, once flashing is started)
4. Probability source reader: LSL inlet or simulation (background thread)
"""

from __future__ import annotations

import argparse
import logging
import os
import sys

import uvicorn

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import config
from api.server import create_app
from database.store import redis_store
from speller.engine import SpellerEngine
from speller.grid import Grid
from speller.sources import LSLProbabilitySource, ProbabilitySource, SimulatedProbabilitySource

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
)
logger = logging.getLogger("speller")


def build_source(simulate: bool) -> ProbabilitySource:
    if simulate:
        return SimulatedProbabilitySource(rate_hz=config.SIM_SAMPLE_RATE_HZ)
    return LSLProbabilitySource(stream_type=config.LSL_STREAM_TYPE)


def build_engine(args: argparse.Namespace) -> SpellerEngine:
    grid = Grid.from_string(args.grid)
    return SpellerEngine(
        grid=grid,
        source=build_source(args.simulate),
        interval_ms=args.interval,
        threshold=args.threshold,
        mode=args.mode,
        refractory_ms=args.refractory,
        store=redis_store if config.REDIS_EVENTS else None,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Row/column BCI speller backend")
    parser.add_argument("--host", default=config.FASTAPI_HOST)
    parser.add_argument("--port", type=int, default=config.FASTAPI_PORT)
    parser.add_argument("--simulate", action="store_true", default=config.SIMULATE_PROBABILITY,
                        help="Use simulated probability samples instead of an LSL stream")
    parser.add_argument("--grid", default=config.SPELLER_GRID,
                        help='Grid rows separated by "|", e.g. "ABC|DEF"')
    parser.add_argument("--interval", type=int, default=config.FLASH_INTERVAL_MS,
                        help="Flash interval in milliseconds")
    parser.add_argument("--threshold", type=float, default=config.PROBABILITY_THRESHOLD)
    parser.add_argument("--mode", choices=["level", "edge"], default=config.TRIGGER_MODE)
    parser.add_argument("--refractory", type=float, default=config.DECODE_REFRACTORY_MS,
                        help="Ignore decode triggers within this many ms of the last one")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    app = create_app()
    app.state.engine = build_engine(args)

    logger.info(
        "Starting speller on %s:%d (simulate=%s, threshold=%.2f, mode=%s)",
        args.host,
        args.port,
        args.simulate,
        args.threshold,
        args.mode,
    )

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level="info",
    )


if __name__ == "__main__":
    main()

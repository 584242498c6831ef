#!/usr/bin/env python3
"""Start the SkillSwap API under uvicorn.

    python run.py                   # 127.0.0.1:8000
    python run.py --host 0.0.0.0 --workers 4
    python run.py --reload          # development

HOST and PORT in the environment override the built-in defaults.
"""

import argparse
import os

import uvicorn

APP_PATH = "skillswap.main:app"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve the SkillSwap API")
    parser.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))
    parser.add_argument("--reload", action="store_true", help="restart on code changes")
    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="worker processes; ignored with --reload",
    )
    parser.add_argument(
        "--log-level",
        choices=["critical", "error", "warning", "info", "debug"],
        default="info",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    uvicorn.run(
        APP_PATH,
        host=args.host,
        port=args.port,
        reload=args.reload,
        workers=1 if args.reload else args.workers,
        log_level=args.log_level,
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()

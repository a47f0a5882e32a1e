from __future__ import annotations

import argparse
import logging
from typing import Optional

import uvicorn


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Serve the brainchuck compile/run API")
    parser.add_argument("--host", default="127.0.0.1", help="Bind address (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=8000, help="Port to listen on (default: 8000)")
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Restart the server when sources change (development only)",
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["critical", "error", "warning", "info", "debug"],
        help="Log level for uvicorn and the brainchuck loggers (default: info)",
    )
    args = parser.parse_args(argv)

    logging.getLogger("brainchuck").setLevel(args.log_level.upper())

    # A factory import string lets uvicorn rebuild the app on reload.
    uvicorn.run(
        "brainchuck.webui.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level,
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

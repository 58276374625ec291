"""Run the Argo Bridge HTTP server.

Usage:
    argo-bridge [--host 0.0.0.0] [--port 8080]
"""
import argparse
import os
from typing import List, Optional

import uvicorn

from .app import create_app
from .bridge import ArgoBridge
from .config import load_config_from_env


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Argo notifications to Slack bridge")
    p.add_argument("--host", default=os.getenv("ARGO_BRIDGE_HOST", "0.0.0.0"))
    p.add_argument("--port", type=int, default=int(os.getenv("ARGO_BRIDGE_PORT", "8080")))
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    config = load_config_from_env()
    print(f"$ARGO_BRIDGE_LOGGING_LEVEL: {config.log_level}")
    app = create_app(ArgoBridge.from_config(config))
    # uvicorn's own access log is replaced by the app's middleware
    uvicorn.run(app, host=args.host, port=args.port, access_log=False)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

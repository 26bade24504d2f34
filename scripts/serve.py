#!/usr/bin/env python3
"""
Server runner for the Query Builder API.

Loads .env from the project root, then starts uvicorn with the settings
from `settings.server`.

    python scripts/serve.py          # development: hot reload, single worker
    python scripts/serve.py --prod   # production: no reload, at least 2 workers
"""

import argparse
import sys
from pathlib import Path

project_root = Path(__file__).parent.parent
src_path = project_root / "src"
sys.path.insert(0, str(src_path))

from dotenv import load_dotenv


def _load_env() -> None:
    env_file = project_root / ".env"
    if env_file.exists():
        load_dotenv(env_file)
        print(f"Loaded environment variables from {env_file}")
    else:
        print(f"No .env file found at {env_file}; using the process environment")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the Query Builder API")
    parser.add_argument("--prod", action="store_true", help="production settings (no reload, >= 2 workers)")
    args = parser.parse_args()

    _load_env()

    import uvicorn
    from querybuilder.config import get_settings

    server_config = get_settings().server

    options = {
        "host": server_config.host,
        "port": server_config.port,
        "log_config": None,  # structlog handles logging
        "access_log": False,  # request logging is done by middleware
    }
    if args.prod:
        options.update(workers=max(server_config.workers, 2), reload=False, server_header=False, date_header=False)
    else:
        options.update(reload=server_config.reload, workers=server_config.workers, reload_dirs=[str(src_path)])

    mode = "production" if args.prod else "development"
    print(f"Starting Query Builder API ({mode}): {server_config.app_module} on {server_config.host}:{server_config.port}")
    print(f"API Documentation: http://{server_config.host}:{server_config.port}/docs")

    uvicorn.run(server_config.app_module, **options)


if __name__ == "__main__":
    main()

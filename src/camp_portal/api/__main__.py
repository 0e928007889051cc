"""
camp_portal.api.__main__

Entrypoint for running the service via `python -m camp_portal.api`.

Responsibilities:
- Load settings and create the app (fails fast on missing auth configuration).
- Start uvicorn with structlog-compatible logging config.
"""

from __future__ import annotations

import uvicorn

from camp_portal.api.app import create_app
from camp_portal.settings import get_settings


def main() -> None:
    settings = get_settings()
    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_config=None,  # structlog
    )


if __name__ == "__main__":
    main()

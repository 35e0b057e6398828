"""Development server entrypoint for ``python -m stock_app``."""
from __future__ import annotations

from .app import create_app
from .config import get_settings


def run() -> None:
    settings = get_settings()
    app = create_app(settings=settings)
    app.run(
        host=settings.host,
        port=settings.port,
        debug=settings.environment == "development",
    )


if __name__ == "__main__":
    run()

from __future__ import annotations

import logging

from common_rest.api.main import app
from common_rest.core.settings import Settings


def configure_logging(settings: Settings) -> None:
    """Console logging, plus a log file when COMMON_REST_LOG_FILE is set."""
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if settings.log_file is not None:
        settings.log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(settings.log_file, encoding="utf-8"))
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


def main() -> None:
    import uvicorn

    settings = Settings.from_env()
    configure_logging(settings)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()

from __future__ import annotations

import logging

import uvicorn

from .config import DEFAULT_APP_CONFIG


def main() -> None:
    config = DEFAULT_APP_CONFIG
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    logging.getLogger(__name__).info("chowsr server listening on %s", config.port)
    uvicorn.run("chowsr.app:app", host=config.host, port=config.port)


if __name__ == "__main__":
    main()

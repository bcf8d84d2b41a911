"""Run the webhook fan-out relay: `python -m classmoji_core.fanout`."""

import uvicorn

from classmoji_core.config.settings import Settings


def main() -> None:
    settings = Settings()
    uvicorn.run(
        "classmoji_core.fanout.app:app",
        host=settings.fanout_host,
        port=settings.fanout_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

"""Start the relay: ``python -m floodwatch``."""

import uvicorn

from floodwatch.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "floodwatch.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_config=None,
    )


if __name__ == "__main__":
    main()

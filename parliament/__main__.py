"""Run the signing functions with uvicorn: ``python -m parliament``."""

import uvicorn

from parliament.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "parliament.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=None,
    )


if __name__ == "__main__":
    main()

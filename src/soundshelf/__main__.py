"""Run the API server: ``python -m soundshelf``."""

import uvicorn

from soundshelf.config import get_settings
from soundshelf.main import create_app


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        create_app(settings),
        host=settings.api.host,
        port=settings.api.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()

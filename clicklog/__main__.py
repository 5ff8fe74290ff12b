"""Run the service with uvicorn."""

import uvicorn

from clicklog.core.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "clicklog.main:app",
        host=settings.host,
        port=settings.port,
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()

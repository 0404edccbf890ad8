"""Run the content index API with uvicorn."""

import uvicorn

from content_index.config import get_settings


def main() -> None:
    """Start the API server on the configured host and port."""
    settings = get_settings()
    uvicorn.run(
        "content_index.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

"""Run the chunk inspection service with uvicorn."""

from __future__ import annotations

import uvicorn

from lokichunk.config import get_settings


def main() -> None:
    """Start uvicorn with host and port from settings."""
    settings = get_settings()
    uvicorn.run(
        "lokichunk.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()

"""
API service entrypoint.
Runs the FastAPI app under uvicorn on the configured host/port.
"""
from __future__ import annotations

import uvicorn

from shared.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        reload=settings.debug,
    )


if __name__ == "__main__":
    main()

"""Entry point for python -m chat_proxy."""

import uvicorn

from chat_proxy.api import app
from chat_proxy.config import settings


def main() -> None:
    """Run the chat proxy server."""
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()

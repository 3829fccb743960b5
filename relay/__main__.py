"""Run the relay: ``python -m relay``."""

import uvicorn

from relay.core.config import settings


def main() -> None:
    uvicorn.run(
        "relay.main:create_app",
        factory=True,
        host=settings.app_host,
        port=settings.app_port,
        log_config=None,  # relay.core.logging owns the root logger
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()

"""Run the Cadence API server.

    python -m cadence
"""

import uvicorn

from cadence.api.app import create_app
from cadence.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(create_app(), host=settings.api.host, port=settings.api.port)


if __name__ == "__main__":
    main()

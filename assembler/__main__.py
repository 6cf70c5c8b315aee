"""Run the API server: ``python -m assembler``."""

import uvicorn

from assembler.config import get_settings


def main() -> None:
    settings = get_settings()
    # Renders block the request for minutes; uvicorn applies no per-request timeout.
    uvicorn.run("assembler.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()

"""Run the API with uvicorn: `python -m bankapi` (HOST and PORT from settings)."""

import uvicorn

from bankapi.config import settings


def main() -> None:
    uvicorn.run(
        "bankapi.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()

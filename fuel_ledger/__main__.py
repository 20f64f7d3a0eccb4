import logging

import uvicorn

from fuel_ledger.config import Settings
from fuel_ledger.main import create_app


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    settings = Settings.from_env()
    if settings.DEBUG:
        logging.getLogger().setLevel(logging.DEBUG)
    uvicorn.run(create_app(settings), host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    main()

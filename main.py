import logging
import sys

import uvicorn

from nokn.config import HOST, LOG_LEVEL, PORT


def run() -> None:
    logging.basicConfig(
        level=LOG_LEVEL,
        format="%(asctime)s [nokn] %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    uvicorn.run("nokn.main:app", host=HOST, port=PORT, log_level=LOG_LEVEL.lower())


if __name__ == "__main__":
    run()

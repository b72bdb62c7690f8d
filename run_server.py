#!/usr/bin/env python3
"""
Forum API Server
Serves the forum JSON API with uvicorn
"""
import logging
import sys

import uvicorn

from config import DB_PATH, DEFAULT_HOST, DEFAULT_PORT

logger = logging.getLogger("run_server")


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logger.info("Starting forum server on %s:%s (database: %s)", DEFAULT_HOST, DEFAULT_PORT, DB_PATH)

    try:
        from app import app

        uvicorn.run(
            app,
            host=DEFAULT_HOST,
            port=DEFAULT_PORT,
            reload=False,
            access_log=True
        )
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception:
        logger.exception("Error starting server")
        sys.exit(1)


if __name__ == "__main__":
    main()

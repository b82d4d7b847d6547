#!/usr/bin/env python
import os
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv
from loguru import logger

from src.server.config import config

if __name__ == "__main__":
    load_dotenv(Path.cwd() / ".env")
    log_level = os.getenv("LOG_LEVEL", config.log_level).upper()
    logger.remove()
    logger.add(sys.stderr, level=log_level)
    logger.info("Out-of-band return node, start running!")
    logger.info(f"当前应用环境：{os.getenv('APP_ENV')}")

    uvicorn.run(
        "src.server.main:app",
        host="0.0.0.0",
        port=8000,
        log_level=log_level.lower(),
    )

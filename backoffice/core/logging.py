"""Logging setup for the API process and its uvicorn loggers."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(name).setLevel(getattr(logging, level.upper(), logging.INFO))
    # python-socketio/engineio are chatty at INFO
    for name in ("socketio", "engineio"):
        logging.getLogger(name).setLevel(logging.WARNING)

import logging
from typing import Union

def setup_logger(name: str, level: Union[int, str] = logging.INFO) -> logging.Logger:
    """
    Sets up a logger with a standard format.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(level)
    return logger

def set_level(prefix: str, level: Union[int, str]) -> None:
    """
    Changes the level of every configured logger whose name starts with prefix.
    Accepts names like "DEBUG" as well as logging constants.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper())
    for name in list(logging.root.manager.loggerDict):
        if name == prefix or name.startswith(prefix + "."):
            logging.getLogger(name).setLevel(level)

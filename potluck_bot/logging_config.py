import logging
import sys

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"

# Chatty third-party loggers, kept at WARNING unless the bot runs at DEBUG.
NOISY_LOGGERS = ("discord", "discord.client", "discord.gateway", "httpx")


def setup_logging(level: int | str = logging.INFO) -> logging.Logger:
    """Attach a stdout handler to the ``potluck_bot`` logger once."""
    logger = logging.getLogger("potluck_bot")
    if logger.handlers:
        return logger
    logger.setLevel(level)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    if logger.getEffectiveLevel() > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    return logger

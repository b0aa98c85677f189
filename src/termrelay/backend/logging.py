"""Log files for a running relay.

Everything lands under the instance's logs/ directory:

    relay.log   termrelay.* loggers at DEBUG, for tracing one connection
                through handshake, attach, relay and cleanup
    info.log    every logger (uvicorn, apscheduler included) at INFO
    error.log   every logger at ERROR

The console gets the same INFO stream as info.log. Files roll over at
midnight and the last 30 are kept.
"""

import logging
from pathlib import Path
from logging.handlers import TimedRotatingFileHandler

LOG_FORMAT = '%(asctime)s.%(msecs)03d %(levelname)-7s %(name)s:%(lineno)d %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
RETAINED_DAYS = 30

# (file name, level, relay loggers only)
LOG_FILES = (
    ("relay.log", logging.DEBUG, True),
    ("info.log", logging.INFO, False),
    ("error.log", logging.ERROR, False),
)


class RelayLoggerFilter(logging.Filter):
    """Pass records from the termrelay package, drop third-party chatter"""

    def filter(self, record):
        return record.name == 'termrelay' or record.name.startswith('termrelay.')


def setup_logging(log_dir: Path) -> None:
    """Replace the root logger's handlers with the relay's file and console handlers.

    Safe to call again (e.g. once per create_app in tests); earlier handlers
    are dropped rather than duplicated.

    Args:
        log_dir: Directory that receives the log files, created if missing
    """
    log_dir = Path(log_dir).expanduser()
    log_dir.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    for file_name, level, relay_only in LOG_FILES:
        handler = TimedRotatingFileHandler(
            filename=log_dir / file_name,
            when='midnight',
            backupCount=RETAINED_DAYS,
            encoding='utf-8',
        )
        handler.setLevel(level)
        handler.setFormatter(formatter)
        if relay_only:
            handler.addFilter(RelayLoggerFilter())
        root_logger.addHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    logging.getLogger(__name__).info(f"Relay logs written to {log_dir}")

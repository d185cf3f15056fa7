import logging, json, sys, time, os

_ROOT = "bmail"


class JsonFormatter(logging.Formatter):
    """One JSON object per line; message text is escaped, never spliced."""

    converter = time.gmtime

    def __init__(self):
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%SZ")

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def _env_level(default=logging.INFO):
    name = (os.getenv("BMAIL_LOG_LEVEL") or "").strip().upper()
    level = logging.getLevelName(name) if name else default
    return level if isinstance(level, int) else default


def get_logger(name=_ROOT, level=None, to_file=None):
    """
    Component logger under the "bmail" namespace.

    Handlers live on each named logger the first time it is requested; the
    level comes from `level`, else BMAIL_LOG_LEVEL, else INFO.
    """
    if name != _ROOT and not name.startswith(_ROOT + "."):
        name = f"{_ROOT}.{name}"
    logger = logging.getLogger(name)
    logger.setLevel(level if level is not None else _env_level())

    if not logger.handlers:
        formatter = JsonFormatter()
        stream = logging.StreamHandler(sys.stdout)
        stream.setFormatter(formatter)
        logger.addHandler(stream)

        if to_file:
            os.makedirs(os.path.dirname(to_file) or ".", exist_ok=True)
            file_handler = logging.FileHandler(to_file)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)

    return logger

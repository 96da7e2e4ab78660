import logging
import logging.config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s] %(message)s"

# attributes every LogRecord carries; anything else came in through `extra=`
_RECORD_ATTRS = set(logging.makeLogRecord({}).__dict__) | {"message", "asctime", "request_id", "taskName"}


class _RequestIdDefault(logging.Filter):
    # records emitted outside a request have no request id
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        return True


class ContextFormatter(logging.Formatter):
    """Appends `extra=` fields as key=value pairs after the message."""

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        line = super().format(record)
        context = {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS and not k.startswith("_")}
        if not context:
            return line
        pairs = " ".join(f"{k}={v}" for k, v in sorted(context.items()))
        head, sep, tail = line.partition("\n")
        return f"{head} {pairs}{sep}{tail}"


def configure_logging(level: str | int = "INFO") -> None:
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"request_id": {"()": _RequestIdDefault}},
        "formatters": {"default": {"()": ContextFormatter, "fmt": LOG_FORMAT}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "filters": ["request_id"],
            },
        },
        "root": {"level": level, "handlers": ["console"]},
    })

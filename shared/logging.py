import logging, json, sys
from typing import Any, Mapping, TextIO, Union

# attributes every LogRecord carries; anything else came in through extra=
_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", "extra"}


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        # extra={"extra": {...}} as used across cdc/, or loose extra= keys
        if hasattr(record, "extra") and isinstance(record.extra, Mapping):
            payload.update(record.extra)  # type: ignore[arg-type]
        for key, value in vars(record).items():
            if key not in _RESERVED and key not in payload:
                payload[key] = value
        return json.dumps(payload, ensure_ascii=False, default=str)


def setup_json_logging(level: Union[int, str] = logging.INFO, stream: TextIO = sys.stdout):
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONFormatter())
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)
    return handler

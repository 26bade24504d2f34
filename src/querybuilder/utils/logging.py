import structlog
import logging
import inspect
import json
from typing import Any, Optional
from querybuilder.config import get_settings

# Guard so repeated imports (app, scripts, tests) configure structlog once
_logging_configured = False

_LEVEL_COLORS = {
    'DEBUG': '\033[36m',
    'INFO': '\033[32m',
    'WARNING': '\033[33m',
    'ERROR': '\033[31m',
    'CRITICAL': '\033[35m',
}
_RESET = '\033[0m'


def _add_module_info(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> structlog.types.EventDict:
    """
    Shorten project logger names to "<layer>.<module>".

    "querybuilder.repositories.schema_locator" becomes "repositories.schema_locator";
    third-party logger names are kept as they are.
    """
    logger_name = event_dict.get('logger', 'unknown')

    if logger_name.startswith('querybuilder.'):
        event_dict['module'] = '.'.join(logger_name.split('.')[-2:])
    else:
        event_dict['module'] = logger_name

    return event_dict


def _json_renderer(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> str:
    """Render the event as indented JSON; non-serialisable values fall back to str()."""
    return json.dumps(event_dict, indent=2, ensure_ascii=False, default=str)


def _console_renderer(logger: Any, method_name: str, event_dict: structlog.types.EventDict) -> str:
    """
    Single-line coloured renderer used at DEBUG level.

    Format: "<timestamp> [LEVEL] module: event (trace: abcd1234) | key=value, ..."
    """
    level = event_dict.get('level', '').upper()
    color = _LEVEL_COLORS.get(level, '')

    line = (
        f"{event_dict.get('timestamp', '')} {color}[{level}]{_RESET} "
        f"{event_dict.get('module', '')}: {event_dict.get('event', '')}"
    )

    trace_id = event_dict.get('trace_id')
    if trace_id:
        line += f" (trace: {trace_id[:8]})"

    skip_fields = {'timestamp', 'level', 'module', 'event', 'trace_id', 'logger'}
    extras = [f"{key}={value}" for key, value in event_dict.items() if key not in skip_fields]
    if extras:
        line += f" | {', '.join(extras)}"

    return line


def configure_logging(log_level: Optional[str] = None) -> None:
    """
    Configure stdlib logging and structlog for the application.

    Args:
        log_level: Level name overriding settings.app.log_level. Passing it
            avoids loading Settings (and therefore the environment).
    """
    global _logging_configured

    if _logging_configured:
        return
    _logging_configured = True

    level_name = str(log_level or get_settings().app.log_level.value).upper()
    level = getattr(logging, level_name, logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        level=level,
        handlers=[logging.StreamHandler()]
    )

    renderer = _console_renderer if level == logging.DEBUG else _json_renderer

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _add_module_info,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Get a configured logger instance.

    Usage:
        logger = get_logger(__name__)
        logger.info("Relevant tables matched", table_count=2, trace_id="abc-123")
    """
    return structlog.get_logger(name)


def get_module_logger() -> structlog.stdlib.BoundLogger:
    """
    Get a logger named after the calling module.

    Falls back to 'unknown' when frame inspection is unavailable.
    """
    module_name = 'unknown'
    frame = inspect.currentframe()

    try:
        if frame is not None and frame.f_back is not None:
            module_name = frame.f_back.f_globals.get('__name__', 'unknown')
    finally:
        del frame

    return get_logger(module_name)

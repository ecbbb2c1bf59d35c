import logging
import sys
from configparser import RawConfigParser
from contextlib import contextmanager
from logging import Logger
from logging import config as logging_config
from typing import Any, Dict, Generator, List, Optional, Tuple

from authkeys import config
from authkeys.common.exception import AuthKeysException

ROOT_LOGGER_NAME = "authkeys"

# Logs go to stderr, stdout is reserved for the reports of the command line tools
DEFAULT_LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "loggers": {
        ROOT_LOGGER_NAME: {
            "level": "INFO",
            "handlers": ["consoleHandler"],
            "propagate": False,
        },
    },
    "handlers": {
        "consoleHandler": {
            "class": "logging.StreamHandler",
            "level": "DEBUG",
            "formatter": "formatter_formatter",
            "stream": "ext://sys.stderr",
        }
    },
    "formatters": {
        "formatter_formatter": {
            "format": "%(asctime)s.%(msecs)03d - %(name)s - %(levelname)s - %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
}

logging_config.dictConfig(DEFAULT_LOGGING_CONFIG)

_configured = False


def _section_options(raw_config: RawConfigParser, prefix: str) -> Dict[str, Dict[str, str]]:
    return {
        section.split("_", 1)[1]: dict(raw_config.items(section))
        for section in raw_config.sections()
        if section.startswith(prefix)
    }


def _parse_args(args_str: str) -> Tuple[Any, ...]:
    """
    Parse the `args` option of a handler section, e.g. "(sys.stderr,)" or
    "('/var/log/authkeys.log',)". Only streams and plain strings are supported.
    """
    args_str = args_str.strip()
    if not (args_str.startswith("(") and args_str.endswith(")")):
        raise ValueError(f"Invalid args format: {args_str}")

    parsed: List[Any] = []
    for arg in (a.strip() for a in args_str[1:-1].split(",")):
        if not arg:
            continue
        if arg == "sys.stdout":
            parsed.append(sys.stdout)
        elif arg == "sys.stderr":
            parsed.append(sys.stderr)
        else:
            parsed.append(arg.strip("'\""))
    return tuple(parsed)


def _build_handler(options: Dict[str, str]) -> logging.Handler:
    handler_class = options.get("class", "logging.StreamHandler")
    args = _parse_args(options.get("args", "()"))

    handler: logging.Handler
    if "FileHandler" in handler_class:
        if not args:
            raise ValueError("FileHandler requires a file name in args")
        handler = logging.FileHandler(filename=args[0])
    elif "StreamHandler" in handler_class:
        handler = logging.StreamHandler(stream=args[0] if args else sys.stderr)
    else:
        raise ValueError(f"Unsupported handler class: {handler_class}")

    handler.setLevel(options.get("level", "NOTSET").upper())
    return handler


def _apply_logger(logger: Logger, options: Dict[str, str], handlers: Dict[str, logging.Handler]) -> None:
    logger.setLevel(options.get("level", "NOTSET").upper())
    if "propagate" in options:
        logger.propagate = options["propagate"] == "1"

    names = [name.strip() for name in options.get("handlers", "").split(",") if name.strip()]
    if names:
        logger.handlers = [handlers[name] for name in names if name in handlers]


def _configure_logging_from_raw(raw_config: RawConfigParser) -> None:
    """
    Configure logging from the `[formatter_*]`, `[handler_*]` and `[logger_*]`
    sections of an INI file, the layout used by logging.config.fileConfig().
    """
    formatters = {
        name: logging.Formatter(options.get("format", "%(message)s"), options.get("datefmt", None))
        for name, options in _section_options(raw_config, "formatter_").items()
    }

    handlers = {}
    for name, options in _section_options(raw_config, "handler_").items():
        handler = _build_handler(options)
        formatter = formatters.get(options.get("formatter", ""))
        if formatter is not None:
            handler.setFormatter(formatter)
        handlers[name] = handler

    for name, options in _section_options(raw_config, "logger_").items():
        logger = logging.getLogger() if name == "root" else logging.getLogger(name)
        _apply_logger(logger, options, handlers)


@contextmanager
def _safe_logging_configuration() -> Generator[None, None, None]:
    """
    Restore handlers, levels and propagation of all loggers if the
    configuration inside the context fails.
    """
    loggers = [logging.getLogger()] + [
        logger for logger in logging.Logger.manager.loggerDict.values() if isinstance(logger, logging.Logger)
    ]
    backup = [(logger, list(logger.handlers), logger.level, logger.propagate) for logger in loggers]

    try:
        yield
    except Exception:
        for logger, handlers, level, propagate in backup:
            logger.handlers = handlers
            logger.setLevel(level)
            logger.propagate = propagate
        raise


def _safe_get_config() -> Optional[RawConfigParser]:
    try:
        return config.get_config("logging")
    except AuthKeysException as e:
        logging.getLogger(ROOT_LOGGER_NAME).warning("Could not load the logging configuration: %s", e)
        return None


def init_logging(loggername: str) -> Logger:
    """
    Return the logger `authkeys.<loggername>`.

    The first call applies the `logging` configuration component, if one is
    installed, on top of DEFAULT_LOGGING_CONFIG.
    """
    global _configured

    logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{loggername}")

    if not _configured:
        _configured = True
        component_config = _safe_get_config()
        if component_config and component_config.sections():
            try:
                with _safe_logging_configuration():
                    _configure_logging_from_raw(component_config)
            except (ValueError, OSError, KeyError) as e:
                logger.error("Logging configuration error: %s", e)

    return logger


def set_verbose(verbose: bool) -> None:
    """Switch all authkeys loggers to DEBUG; the configured level is kept otherwise.

    Handlers attached to the authkeys loggers are lowered too, so a handler
    level set in logging.conf does not filter the debug records out.
    """
    if not verbose:
        return

    loggers = [logging.getLogger(ROOT_LOGGER_NAME)] + [
        logger
        for name, logger in logging.Logger.manager.loggerDict.items()
        if name.startswith(f"{ROOT_LOGGER_NAME}.") and isinstance(logger, logging.Logger)
    ]
    loggers[0].setLevel(logging.DEBUG)
    for logger in loggers:
        if logger.level > logging.DEBUG:
            logger.setLevel(logging.DEBUG)
        for handler in logger.handlers:
            handler.setLevel(logging.DEBUG)

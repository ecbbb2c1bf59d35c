import ast
import logging
import os
import os.path
from configparser import Error as ConfigParserError
from configparser import RawConfigParser
from typing import Any, Dict, List, Optional

from authkeys.common.exception import ConfigurationError

base_logger = logging.getLogger("authkeys.config")


def environ_bool(env_name: str, default: bool) -> bool:
    val = os.getenv(env_name, "default").lower()
    if val in ["on", "true", "1"]:
        return True
    if val in ["off", "false", "0"]:
        return False
    if val == "default":
        return default
    raise ValueError(
        f"Environment variable {env_name} set to invalid value " f"{val} (use either on/true/1 or off/false/0)"
    )


DEFAULT_AUTHORIZED_KEYS = "~/.ssh/authorized_keys"

# Possible paths for base configuration files, the first one found is used
CONFIG_FILES = {
    "check": ["/etc/authkeys/check.conf", "/usr/etc/authkeys/check.conf"],
    "logging": ["/etc/authkeys/logging.conf", "/usr/etc/authkeys/logging.conf"],
}

# Paths to directories in which options can be overriden using configuration
# snippets
CONFIG_SNIPPETS_DIRS = {
    "check": ["/usr/etc/authkeys/check.conf.d", "/etc/authkeys/check.conf.d"],
    "logging": ["/usr/etc/authkeys/logging.conf.d", "/etc/authkeys/logging.conf.d"],
}

CONFIG_ENV = {
    "check": os.environ.get("AUTHKEYS_CHECK_CONFIG", ""),
    "logging": os.environ.get("AUTHKEYS_LOGGING_CONFIG", ""),
}

# Single instance
_config: Optional[Dict[str, RawConfigParser]] = None


def _read_files(component: str, parser: RawConfigParser, paths: List[str]) -> List[str]:
    try:
        return parser.read(paths)
    except ConfigParserError as e:
        raise ConfigurationError(f"Failed to parse configuration for component '{component}': {e}") from e


def _apply_snippets(component: str, parser: RawConfigParser) -> None:
    for d in (x for x in CONFIG_SNIPPETS_DIRS.get(component, []) if x and os.path.isdir(x)):
        snippets = sorted(os.path.join(d, f) for f in os.listdir(d) if os.path.isfile(os.path.join(d, f)))
        applied = _read_files(component, parser, snippets)
        if applied:
            base_logger.debug("Applied configuration snippets from %s", d)


def get_config(component: str) -> RawConfigParser:
    """Find the configuration file to use for the given component and apply the
    overrides defined by configuration snippets.

    * If a configuration path is set through the AUTHKEYS_<COMPONENT>_CONFIG
    environment variable, only this file is used.
    * Otherwise the first existing file of CONFIG_FILES[component] is used as
    base configuration and the files found in the CONFIG_SNIPPETS_DIRS of the
    component are applied on top of it, in sorted order.

    A component without any configuration file gets an empty configuration;
    callers are expected to provide fallbacks.
    """

    global _config

    if not _config:
        _config = {}

    if not component:
        raise ConfigurationError("No component provided to get_config")

    if component not in CONFIG_FILES:
        raise ConfigurationError(f"Invalid component '{component}'")

    if component in _config:
        return _config[component]

    # Use RawConfigParser, so we can also use it as the logging config
    parser = RawConfigParser()

    env_file = CONFIG_ENV.get(component, "")
    if env_file:
        if os.path.isfile(env_file):
            files = _read_files(component, parser, [env_file])
            base_logger.debug("Reading configuration from %s", files)
            _config[component] = parser
            return parser
        base_logger.info(
            "Configuration file %s for %s set through environment variable not found, falling back to installed configuration",
            env_file,
            component,
        )

    for c in CONFIG_FILES[component]:
        files = _read_files(component, parser, [c])
        if files:
            base_logger.debug("Reading configuration from %s", files)
            _apply_snippets(component, parser)
            break
    else:
        base_logger.debug("No configuration file found for %s in %s, using defaults", component, CONFIG_FILES[component])

    _config[component] = parser
    return parser


def _get_env(component: str, option: str, section: Optional[str]) -> Optional[str]:
    opt_section = f"_{section.upper()}" if section else ""
    env_name = f"AUTHKEYS_{component.upper()}{opt_section}_{option.upper()}"
    env_value = os.environ.get(env_name, None)
    if env_value is not None:
        log_msg = f'option "{option}" on section {section} for component {component}.conf was overriden by environment variable {env_name}'
        base_logger.info(log_msg.replace("on section None ", ""))

    return env_value


def getlist(component: str, option: str, section: Optional[str] = None, fallback: Optional[List[Any]] = None) -> List[Any]:
    env_value = _get_env(component, option, section)
    if not section:
        section = component

    if env_value is not None:
        read = env_value.strip('" ')
    else:
        read = get_config(component).get(section, option, fallback="").strip('" ')

    if not read:
        return list(fallback or [])

    try:
        l = ast.literal_eval(read)
    except (ValueError, SyntaxError) as e:
        raise ConfigurationError(
            f"Failed to get list from config for component '{component}', section '{section}', option '{option}'"
        ) from e

    if not isinstance(l, list):
        raise ConfigurationError(f"Config option '{option}' in section '{section}' of component {component} should be a list")
    return [i.strip() if isinstance(i, str) else i for i in l]


def get(component: str, option: str, section: Optional[str] = None, fallback: str = "") -> str:
    env_value = _get_env(component, option, section)
    if not section:
        section = component

    if env_value is not None:
        return env_value.strip('" ')

    return get_config(component).get(section, option, fallback=fallback).strip('" ')


def getint(component: str, option: str, section: Optional[str] = None, fallback: int = -1) -> int:
    env_value = _get_env(component, option, section)
    if not section:
        section = component

    if env_value is not None:
        return int(env_value)

    return get_config(component).getint(section, option, fallback=fallback)


def getboolean(component: str, option: str, section: Optional[str] = None, fallback: bool = False) -> bool:
    env_value = _get_env(component, option, section)
    if not section:
        section = component

    if env_value is not None:
        env_value_lower = env_value.lower().strip('" ')
        if env_value_lower not in RawConfigParser.BOOLEAN_STATES:
            return fallback
        return RawConfigParser.BOOLEAN_STATES[env_value_lower]

    return get_config(component).getboolean(section, option, fallback=fallback)


def has_option(component: str, option: str, section: Optional[str] = None) -> bool:
    env_value = _get_env(component, option, section)
    if not section:
        section = component

    if env_value is not None:
        return True

    return get_config(component).has_option(section, option)


def authorized_keys_paths() -> List[str]:
    """Files checked when none is given on the command line.

    The option takes either a single path or a list of paths.
    """
    value = get("check", "authorized_keys", fallback=DEFAULT_AUTHORIZED_KEYS)
    if value.startswith("["):
        paths = getlist("check", "authorized_keys", fallback=[DEFAULT_AUTHORIZED_KEYS])
    else:
        paths = [value]
    return [os.path.expanduser(p) for p in paths]

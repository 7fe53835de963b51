# Copyright Red Hat
#
# ounce/_config.py - Snapshot guard wrapper configuration
#
# This file is part of the ounce project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Configuration file support for ounce.
"""
from configparser import ConfigParser, Error as ConfigParserError
from dataclasses import dataclass
from os.path import exists, expanduser, join
from typing import List, Optional
import logging
import os

from ._ounce import (
    DEFAULT_SNAPSHOT_SUFFIX,
    OunceConfigError,
    OunceArgumentError,
    validate_suffix,
)

_log = logging.getLogger(__name__)

_log_debug = _log.debug

#: Base directory for system-wide ounce configuration
_OUNCE_CFG_DIR = "/etc/ounce"

#: Configuration file name
_OUNCE_CFG_NAME = "ounce.conf"

#: System configuration file path
_OUNCE_CFG_PATH = join(_OUNCE_CFG_DIR, _OUNCE_CFG_NAME)

#: Environment variable naming an explicit configuration file
OUNCE_CONFIG_ENV = "OUNCE_CONFIG"

#: Configuration file text encoding
_OUNCE_CFG_ENCODING = "utf8"

#: Main configuration file section
_OUNCE_CFG_GLOBAL = "Global"

#: Suffix configuration key
_OUNCE_CFG_SUFFIX = "Suffix"

#: UTC configuration key
_OUNCE_CFG_UTC = "UTC"


def default_config_paths() -> List[str]:
    """
    Return the list of configuration files to read, lowest precedence first.

    :returns: A list of configuration file paths.
    :rtype: ``List[str]``
    """
    override = os.environ.get(OUNCE_CONFIG_ENV)
    if override:
        return [override]
    xdg_config_home = os.environ.get("XDG_CONFIG_HOME") or expanduser("~/.config")
    return [_OUNCE_CFG_PATH, join(xdg_config_home, "ounce", _OUNCE_CFG_NAME)]


@dataclass
class OunceConfig:
    """
    Ounce configuration.
    """

    suffix: str = DEFAULT_SNAPSHOT_SUFFIX
    utc: bool = False

    @classmethod
    def from_file(cls, config_files: Optional[List[str]] = None) -> "OunceConfig":
        """
        Load ``OunceConfig`` from the INI-style configuration files listed
        in ``config_files``. Files that do not exist are skipped and values
        in later files override earlier ones.

        :param config_files: paths to ounce.conf files, or ``None`` to use
                             ``default_config_paths()``.
        :type config_files: ``List[str]``
        :returns: An ``OunceConfig`` instance.
        :rtype: ``OunceConfig``
        """
        if config_files is None:
            config_files = default_config_paths()

        found = [path for path in config_files if exists(path)]
        if not found:
            return OunceConfig()

        _log_debug("Loading configuration from '%s'", ", ".join(found))
        # Suffix values are literal: no '%' interpolation.
        cfg = ConfigParser(interpolation=None)
        try:
            cfg.read(found, encoding=_OUNCE_CFG_ENCODING)
        except (ConfigParserError, UnicodeDecodeError) as err:
            raise OunceConfigError(f"Error parsing configuration: {err}") from err

        config = OunceConfig()
        if not cfg.has_section(_OUNCE_CFG_GLOBAL):
            return config

        if cfg.has_option(_OUNCE_CFG_GLOBAL, _OUNCE_CFG_SUFFIX):
            try:
                suffix = cfg.get(_OUNCE_CFG_GLOBAL, _OUNCE_CFG_SUFFIX).strip()
                config.suffix = validate_suffix(suffix)
            except (ConfigParserError, OunceArgumentError) as err:
                raise OunceConfigError(
                    f"Invalid {_OUNCE_CFG_SUFFIX} value in configuration: {err}"
                ) from err

        if cfg.has_option(_OUNCE_CFG_GLOBAL, _OUNCE_CFG_UTC):
            try:
                config.utc = cfg.getboolean(_OUNCE_CFG_GLOBAL, _OUNCE_CFG_UTC)
            except (ConfigParserError, ValueError) as err:
                raise OunceConfigError(
                    f"Invalid {_OUNCE_CFG_UTC} value in configuration: {err}"
                ) from err

        return config


__all__ = [
    "OUNCE_CONFIG_ENV",
    "OunceConfig",
    "default_config_paths",
]

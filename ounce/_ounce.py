# Copyright Red Hat
#
# ounce/_ounce.py - Snapshot guard wrapper global definitions
#
# This file is part of the ounce project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Global definitions for the top-level ounce package.
"""
from dataclasses import dataclass, field
from typing import List, Optional
from enum import Enum
import logging

_log = logging.getLogger("ounce")

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

# Ounce debugging subsystem masks
OUNCE_DEBUG_COMMAND = 1
OUNCE_DEBUG_LOOKUP = 2
OUNCE_DEBUG_SNAPSHOT = 4
OUNCE_DEBUG_PRIVILEGE = 8
OUNCE_DEBUG_ALL = (
    OUNCE_DEBUG_COMMAND
    | OUNCE_DEBUG_LOOKUP
    | OUNCE_DEBUG_SNAPSHOT
    | OUNCE_DEBUG_PRIVILEGE
)

# Ounce debugging subsystem names
OUNCE_SUBSYSTEM_COMMAND = "ounce.command"
OUNCE_SUBSYSTEM_LOOKUP = "ounce.lookup"
OUNCE_SUBSYSTEM_SNAPSHOT = "ounce.snapshot"
OUNCE_SUBSYSTEM_PRIVILEGE = "ounce.privilege"

_DEBUG_MASK_TO_SUBSYSTEM = {
    OUNCE_DEBUG_COMMAND: OUNCE_SUBSYSTEM_COMMAND,
    OUNCE_DEBUG_LOOKUP: OUNCE_SUBSYSTEM_LOOKUP,
    OUNCE_DEBUG_SNAPSHOT: OUNCE_SUBSYSTEM_SNAPSHOT,
    OUNCE_DEBUG_PRIVILEGE: OUNCE_SUBSYSTEM_PRIVILEGE,
}

#: ``--debug`` option names and the mask values they enable.
OUNCE_DEBUG_NAMES = {
    subsystem.rsplit(".", 1)[1]: flag
    for flag, subsystem in _DEBUG_MASK_TO_SUBSYSTEM.items()
}
OUNCE_DEBUG_NAMES["all"] = OUNCE_DEBUG_ALL

_debug_subsystems = set()

#: The wrapper's own command name.
OUNCE_CMD = "ounce"

#: Version lookup and snapshot creation tool.
HTTM_CMD = "httm"

#: ZFS dataset management command.
ZFS_CMD = "zfs"

#: ZFS pool management command.
ZPOOL_CMD = "zpool"

#: Default suffix for snapshots requested by ounce.
DEFAULT_SNAPSHOT_SUFFIX = "ounceSnapFileMount"

#: Escalation programs in order of preference.
ESCALATION_PROGRAMS = ("sudo", "doas", "pkexec")

#: Rights granted on each pool by the privilege grant flow.
GRANT_PERMISSIONS = "mount,snapshot"


class SubsystemFilter(logging.Filter):
    """
    Filters DEBUG records based on a set of enabled subsystem names.
    Non-DEBUG records or DEBUG records without a 'subsystem' attribute
    are always passed through.
    """

    def __init__(self, name=""):
        super().__init__(name)
        self.enabled_subsystems = set(_debug_subsystems)

    def filter(self, record):
        # Always pass non-DEBUG messages.
        if record.levelno != logging.DEBUG:
            return True

        # Always pass DEBUG messages that aren't for a specific subsystem.
        if not hasattr(record, "subsystem"):
            return True

        return record.subsystem in self.enabled_subsystems

    def set_debug_subsystems(self, subsystems):
        """Sets the collection of subsystems to allow."""
        self.enabled_subsystems = set(subsystems)


def set_debug_mask(mask):
    """
    Set the debug mask for the ``ounce`` package.

    :param mask: the logical OR of the ``OUNCE_DEBUG_*``
                 values to log.
    :rtype: None
    """
    # pylint: disable=global-statement
    global _debug_subsystems

    if mask < 0 or mask > OUNCE_DEBUG_ALL:
        raise ValueError(f"Invalid ounce debug mask: {mask}")

    enabled_subsystems = []
    for flag, subsystem_name in _DEBUG_MASK_TO_SUBSYSTEM.items():
        if mask & flag:
            enabled_subsystems.append(subsystem_name)

    ounce_log = logging.getLogger("ounce")
    for handler in ounce_log.handlers:
        for f in handler.filters:
            if isinstance(f, SubsystemFilter):
                f.set_debug_subsystems(enabled_subsystems)

    _debug_subsystems = set(enabled_subsystems)


#
# Ounce exception types
#


class OunceError(Exception):
    """
    Base class for ounce errors.
    """


class OunceDependencyError(OunceError):
    """
    A program required by ounce was not found on the search path.
    """


class OunceArgumentError(OunceError):
    """
    Malformed wrapper arguments, or no usable target program.
    """


class OunceRecursionError(OunceError):
    """
    Ounce was asked to wrap itself.
    """


class OunceLookupError(OunceError):
    """
    The snapshot version lookup failed.
    """


class OunceSnapshotError(OunceError):
    """
    A snapshot could not be taken, with or without escalated privileges.
    """


class OuncePrivilegeError(OunceError):
    """
    No privilege escalation program is available.
    """


class OunceGrantError(OunceError):
    """
    Snapshot privileges could not be granted on a pool.
    """


class OunceConfigError(OunceError):
    """
    An error parsing an ounce configuration file.
    """


class PrivilegeTier(Enum):
    """
    The privilege level at which a callout is made.
    """

    UNPRIVILEGED = "unprivileged"
    ESCALATED = "escalated"


@dataclass
class WrapperOptions:
    """
    Options consumed by ounce itself from the front of the command line.
    """

    suffix: str = DEFAULT_SNAPSHOT_SUFFIX
    utc: bool = False
    verbose: int = 0
    debug: Optional[str] = None


@dataclass(frozen=True)
class TargetSpec:
    """
    The program to run and the arguments to forward to it untouched.
    """

    program: str
    args: List[str] = field(default_factory=list)

    @property
    def argv(self) -> List[str]:
        """
        The complete argument vector used to execute the target.
        """
        return [self.program] + list(self.args)


def validate_suffix(suffix: Optional[str]) -> str:
    """
    Check that ``suffix`` is usable as a snapshot name suffix.

    :param suffix: The suffix string to check.
    :returns: The validated suffix.
    :rtype: ``str``
    :raises: ``OunceArgumentError`` if the suffix is empty or contains
             whitespace.
    """
    if not suffix:
        raise OunceArgumentError("suffix is empty")
    if any(c.isspace() for c in suffix):
        raise OunceArgumentError(
            f"suffix '{suffix}' must not contain whitespace characters"
        )
    return suffix


__all__ = [
    "OUNCE_DEBUG_COMMAND",
    "OUNCE_DEBUG_LOOKUP",
    "OUNCE_DEBUG_SNAPSHOT",
    "OUNCE_DEBUG_PRIVILEGE",
    "OUNCE_DEBUG_ALL",
    "OUNCE_DEBUG_NAMES",
    # Debug logging - subsystem name interface
    "SubsystemFilter",
    "OUNCE_SUBSYSTEM_COMMAND",
    "OUNCE_SUBSYSTEM_LOOKUP",
    "OUNCE_SUBSYSTEM_SNAPSHOT",
    "OUNCE_SUBSYSTEM_PRIVILEGE",
    # Debug logging - mask interface
    "set_debug_mask",
    # External commands and defaults
    "OUNCE_CMD",
    "HTTM_CMD",
    "ZFS_CMD",
    "ZPOOL_CMD",
    "DEFAULT_SNAPSHOT_SUFFIX",
    "ESCALATION_PROGRAMS",
    "GRANT_PERMISSIONS",
    "OunceError",
    "OunceDependencyError",
    "OunceArgumentError",
    "OunceRecursionError",
    "OunceLookupError",
    "OunceSnapshotError",
    "OuncePrivilegeError",
    "OunceGrantError",
    "OunceConfigError",
    "PrivilegeTier",
    "WrapperOptions",
    "TargetSpec",
    "validate_suffix",
]

# vim: set et ts=4 sw=4 :

# Copyright Red Hat
#
# ounce/callouts/_privilege.py - Privilege escalation program discovery
#
# This file is part of the ounce project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Discovery of a privilege escalation program.
"""
from shutil import which
from typing import Iterable
import logging
import os

from ounce import (
    OUNCE_SUBSYSTEM_PRIVILEGE,
    ESCALATION_PROGRAMS,
    OuncePrivilegeError,
)

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info


def _log_debug_privilege(msg, *args, **kwargs):
    """A wrapper for privilege subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": OUNCE_SUBSYSTEM_PRIVILEGE}, **kwargs)


def find_escalation_program(candidates: Iterable[str] = ESCALATION_PROGRAMS) -> str:
    """
    Return the path of the first escalation program from ``candidates``
    found on the search path.

    The result is never cached: each call searches ``PATH`` again.

    :param candidates: Program names in order of preference.
    :returns: The absolute path to the escalation program.
    :rtype: ``str``
    :raises: ``OuncePrivilegeError`` if no candidate is found.
    """
    candidates = list(candidates)
    for name in candidates:
        path = which(name)
        _log_debug_privilege("Escalation program '%s' resolved to %s", name, path)
        if path:
            _log_info("Using '%s' for privilege escalation", path)
            return path
    raise OuncePrivilegeError(
        f"'{candidates[0]}' is required to escalate privileges: check that "
        f"one of {', '.join(repr(c) for c in candidates)} is in your path"
    )


def is_privileged_user() -> bool:
    """
    Return ``True`` if the calling process runs with root privileges.

    :rtype: ``bool``
    """
    return os.geteuid() == 0

# Copyright Red Hat
#
# ounce/callouts/_grant.py - ZFS snapshot privilege delegation
#
# This file is part of the ounce project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Grant the current user mount and snapshot rights on every ZFS pool.
"""
from subprocess import run, PIPE
from typing import Callable, List, Optional
import logging
import pwd
import os

from ounce import (
    OUNCE_SUBSYSTEM_PRIVILEGE,
    GRANT_PERMISSIONS,
    OunceGrantError,
)

from ._privilege import find_escalation_program, is_privileged_user

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning


def _log_debug_privilege(msg, *args, **kwargs):
    """A wrapper for privilege subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": OUNCE_SUBSYSTEM_PRIVILEGE}, **kwargs)


#: zpool list arguments selecting only the pool name column
_ZPOOL_LIST_NAMES = ["list", "-o", "name"]

#: Column heading printed by zpool list
_ZPOOL_NAME_HEADING = "NAME"

#: zfs delegated administration subcommand
_ZFS_ALLOW = "allow"


def current_user_name() -> str:
    """
    Return the name of the effective user of this process.

    :rtype: ``str``
    """
    return pwd.getpwuid(os.geteuid()).pw_name


def check_unprivileged_user():
    """
    Refuse to grant privileges when running as the superuser.

    :raises: ``OunceGrantError`` if the effective user is privileged.
    """
    if is_privileged_user():
        raise OunceGrantError(
            "ounce must be executed as an unprivileged user to obtain their "
            "true user name: you will be prompted when additional privileges "
            "are needed"
        )


def parse_pool_list(output: str) -> List[str]:
    """
    Parse ``zpool list -o name`` output into a list of pool names.

    :param output: The command output.
    :returns: Pool names in listed order.
    :rtype: ``List[str]``
    """
    pools = []
    for index, line in enumerate(output.splitlines()):
        name = line.strip()
        if not name:
            continue
        if index == 0 and name == _ZPOOL_NAME_HEADING:
            continue
        pools.append(name)
    return pools


def list_pools(escalation: str, zpool_cmd: str) -> List[str]:
    """
    Return the names of all imported pools, listed with escalated
    privileges.

    :param escalation: Path to the escalation program.
    :param zpool_cmd: Path to the zpool command.
    :returns: A list of pool names.
    :rtype: ``List[str]``
    :raises: ``OunceGrantError`` if the pool listing fails.
    """
    list_cmd = [escalation, zpool_cmd] + _ZPOOL_LIST_NAMES
    _log_debug_privilege("Calling %s", " ".join(list_cmd))
    try:
        result = run(list_cmd, check=False, stdout=PIPE, encoding="utf8")
    except OSError as err:
        raise OunceGrantError(f"Could not execute '{zpool_cmd}': {err}") from err
    if result.returncode != 0:
        raise OunceGrantError(
            f"Could not list pools (status={result.returncode})"
        )
    return parse_pool_list(result.stdout)


def grant_pool(escalation: str, zfs_cmd: str, user_name: str, pool: str):
    """
    Delegate mount and snapshot rights on ``pool`` to ``user_name``.

    :raises: ``OunceGrantError`` if the grant fails.
    """
    allow_cmd = [escalation, zfs_cmd, _ZFS_ALLOW, user_name, GRANT_PERMISSIONS, pool]
    _log_debug_privilege("Calling %s", " ".join(allow_cmd))
    try:
        result = run(allow_cmd, check=False)
    except OSError as err:
        raise OunceGrantError(f"Could not execute '{zfs_cmd}': {err}") from err
    if result.returncode != 0:
        raise OunceGrantError(f"Could not obtain privileges on {pool}")


def give_privileges(
    zfs_cmd: str,
    zpool_cmd: str,
    resolve_escalation: Optional[Callable[[], str]] = None,
) -> List[str]:
    """
    Grant the calling user snapshot privileges on every imported pool.

    Must be run as an unprivileged user: the current user name is the one
    that receives the delegated rights. Any failed grant aborts the flow.

    :param zfs_cmd: Path to the zfs command.
    :param zpool_cmd: Path to the zpool command.
    :param resolve_escalation: A callable returning the escalation program.
    :returns: The pools on which rights were granted.
    :rtype: ``List[str]``
    :raises: ``OunceGrantError`` on any failure.
    """
    check_unprivileged_user()

    user_name = current_user_name()
    resolve_escalation = resolve_escalation or find_escalation_program
    escalation = resolve_escalation()

    pools = list_pools(escalation, zpool_cmd)
    if not pools:
        _log_warn("No pools found: no privileges granted")

    for pool in pools:
        grant_pool(escalation, zfs_cmd, user_name, pool)
        _log_info("Granted %s on %s to %s", GRANT_PERMISSIONS, pool, user_name)

    return pools

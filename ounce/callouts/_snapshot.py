# Copyright Red Hat
#
# ounce/callouts/_snapshot.py - Snapshot creation callout
#
# This file is part of the ounce project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Request snapshots of the datasets containing a set of files.
"""
from subprocess import run, DEVNULL
from typing import Callable, List, Optional, Sequence
import logging

from ounce import (
    OUNCE_SUBSYSTEM_SNAPSHOT,
    OunceSnapshotError,
    PrivilegeTier,
)

from ._privilege import find_escalation_program

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info


def _log_debug_snapshot(msg, *args, **kwargs):
    """A wrapper for snapshot subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": OUNCE_SUBSYSTEM_SNAPSHOT}, **kwargs)


#: Use UTC timestamps in snapshot names.
HTTM_UTC = "--utc"

#: Snapshot option prefix: takes the suffix as its value.
HTTM_SNAP = "--snap"


def snapshot_command(
    httm_cmd: str, paths: Sequence[str], suffix: str, utc: bool = False
) -> List[str]:
    """
    Build the snapshot creation command line for ``paths``.

    :param httm_cmd: Path to the snapshot tool.
    :param paths: The files whose datasets should be snapshotted.
    :param suffix: The snapshot name suffix.
    :param utc: Use UTC timestamps in snapshot names.
    :returns: A command argument list.
    :rtype: ``List[str]``
    """
    snap_cmd = [httm_cmd]
    if utc:
        snap_cmd.append(HTTM_UTC)
    snap_cmd.append(f"{HTTM_SNAP}={suffix}")
    snap_cmd.extend(paths)
    return snap_cmd


def _run_snapshot(snap_cmd: List[str], quiet: bool) -> int:
    _log_debug_snapshot("Calling %s", " ".join(snap_cmd))
    output = DEVNULL if quiet else None
    try:
        result = run(snap_cmd, check=False, stdout=output, stderr=output)
    except OSError as err:
        if quiet:
            _log_debug_snapshot("Could not execute %s: %s", snap_cmd[0], err)
            return 127
        raise OunceSnapshotError(
            f"Could not execute '{snap_cmd[0]}': {err}"
        ) from err
    _log_debug_snapshot("%s exited with status %d", snap_cmd[0], result.returncode)
    return result.returncode


def take_snapshot(
    httm_cmd: str,
    paths: Sequence[str],
    suffix: str,
    utc: bool = False,
    resolve_escalation: Optional[Callable[[], str]] = None,
) -> PrivilegeTier:
    """
    Snapshot the datasets holding ``paths``, escalating privileges if an
    unprivileged attempt fails.

    The unprivileged attempt is made silently: its output and errors are
    discarded and only its exit status is used. The escalated attempt
    inherits the terminal so that prompts, output and errors are shown.

    :param httm_cmd: Path to the snapshot tool.
    :param paths: The files whose datasets should be snapshotted.
    :param suffix: The snapshot name suffix.
    :param utc: Use UTC timestamps in snapshot names.
    :param resolve_escalation: A callable returning the escalation program
                               path, called at most once and only if the
                               unprivileged attempt fails.
    :returns: The privilege tier at which the snapshot succeeded.
    :rtype: ``PrivilegeTier``
    :raises: ``OunceSnapshotError`` if the escalated attempt fails, or
             ``OuncePrivilegeError`` if no escalation program exists.
    """
    snap_cmd = snapshot_command(httm_cmd, paths, suffix, utc=utc)

    if _run_snapshot(snap_cmd, quiet=True) == 0:
        _log_info("Took snapshot for %d path(s) without privileges", len(paths))
        return PrivilegeTier.UNPRIVILEGED

    resolve_escalation = resolve_escalation or find_escalation_program
    escalation = resolve_escalation()
    _log_debug_snapshot("Retrying snapshot with '%s'", escalation)

    status = _run_snapshot([escalation] + snap_cmd, quiet=False)
    if status != 0:
        raise OunceSnapshotError(
            f"'{httm_cmd}' snapshot error (status={status}): check you have "
            "the correct permissions to snapshot"
        )
    _log_info("Took snapshot for %d path(s) using '%s'", len(paths), escalation)
    return PrivilegeTier.ESCALATED

# Copyright Red Hat
#
# ounce/callouts/_lookup.py - Snapshot version lookup callout
#
# This file is part of the ounce project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Query the version lookup tool for files without a current snapshot.
"""
from subprocess import run
from typing import List, Optional, Sequence
import logging

from ounce import (
    OUNCE_SUBSYSTEM_LOOKUP,
    OunceLookupError,
)

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_warn = _log.warning


def _log_debug_lookup(msg, *args, **kwargs):
    """A wrapper for lookup subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": OUNCE_SUBSYSTEM_LOOKUP}, **kwargs)


#: Select only a last snapshot that differs from the live file.
HTTM_LAST_SNAP_NO_DITTO = "--last-snap=no-ditto"

#: Plain, machine readable output.
HTTM_NOT_SO_PRETTY = "--not-so-pretty"

#: Field delimiter in lookup output.
_FIELD_SEP = ":"


def _match_candidate(line: str, candidates: Sequence[str]) -> Optional[str]:
    """
    Return the longest path in ``candidates`` that ``line`` begins with,
    when followed by a field separator or the end of the line.
    """
    best = None
    for path in candidates:
        if not line.startswith(path):
            continue
        rest = line[len(path):]
        if rest and not rest.startswith(_FIELD_SEP):
            continue
        if best is None or len(path) > len(best):
            best = path
    return best


def parse_lookup_output(output: str, candidates: Sequence[str] = ()) -> List[str]:
    """
    Parse the output of a last snapshot lookup into the list of paths that
    still need a snapshot.

    Each line holds one record with fields separated by ``:``; the path is
    the first field. Because a path may itself contain ``:``, a line that
    starts with one of the queried ``candidates`` followed by a separator
    yields that candidate whole. Blank lines are ignored. Paths containing
    a newline cannot be represented in this format and are never returned.

    :param output: The text written to stdout by the lookup tool.
    :param candidates: The paths passed to the lookup tool.
    :returns: The paths in output order.
    :rtype: ``List[str]``
    """
    needed = []
    for line in output.splitlines():
        if not line.strip():
            continue
        path = _match_candidate(line, candidates)
        if path is None:
            path, _, _ = line.partition(_FIELD_SEP)
        if not path:
            _log_warn("Ignoring malformed lookup output line: %s", line)
            continue
        _log_debug_lookup("Lookup reports '%s' needs a snapshot", path)
        needed.append(path)
    return needed


def find_paths_needing_snapshot(httm_cmd: str, paths: Sequence[str]) -> List[str]:
    """
    Ask the version lookup tool which of ``paths`` have no snapshot that
    matches their live contents.

    :param httm_cmd: Path to the lookup tool.
    :param paths: The candidate paths to query, in scan order.
    :returns: The paths that need a snapshot, in output order.
    :rtype: ``List[str]``
    :raises: ``OunceLookupError`` if the lookup tool exits non-zero or
             cannot be executed.
    """
    if not paths:
        return []

    lookup_cmd = [httm_cmd, HTTM_LAST_SNAP_NO_DITTO, HTTM_NOT_SO_PRETTY]
    lookup_cmd.extend(paths)
    _log_debug_lookup("Calling %s", " ".join(lookup_cmd))

    try:
        result = run(
            lookup_cmd,
            check=False,
            capture_output=True,
            encoding="utf8",
            errors="surrogateescape",
        )
    except OSError as err:
        raise OunceLookupError(f"Could not execute '{httm_cmd}': {err}") from err

    if result.returncode != 0:
        if result.stderr:
            _log_debug_lookup("Lookup stderr: %s", result.stderr.strip())
        raise OunceLookupError(
            f"'{httm_cmd}' lookup error (status={result.returncode}): "
            f"{(result.stderr or '').strip()}"
        )

    return parse_lookup_output(result.stdout, paths)

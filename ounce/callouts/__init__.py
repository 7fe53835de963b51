# Copyright Red Hat
#
# ounce/callouts/__init__.py - External program callouts
#
# This file is part of the ounce project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Interfaces to the external programs ounce drives: the snapshot version
lookup and creation tool, ZFS privilege delegation and privilege
escalation helpers.
"""

from ._privilege import find_escalation_program, is_privileged_user
from ._lookup import find_paths_needing_snapshot, parse_lookup_output
from ._snapshot import snapshot_command, take_snapshot
from ._grant import (
    check_unprivileged_user,
    give_privileges,
    list_pools,
    parse_pool_list,
)

__all__ = [
    "find_escalation_program",
    "is_privileged_user",
    "find_paths_needing_snapshot",
    "parse_lookup_output",
    "snapshot_command",
    "take_snapshot",
    "check_unprivileged_user",
    "give_privileges",
    "list_pools",
    "parse_pool_list",
]

# Copyright Red Hat
#
# tests/__init__.py - Ounce test package
#
# This file is part of the ounce project.
#
# SPDX-License-Identifier: Apache-2.0
import logging
import os

log = logging.getLogger()
log.setLevel(logging.DEBUG)
formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s')
file_handler = logging.FileHandler("test.log")
file_handler.setFormatter(formatter)
console_handler = logging.StreamHandler()
console_handler.setFormatter(formatter)
log.addHandler(file_handler)
log.addHandler(console_handler)

#: Resolved paths returned by the mocked ``which()``.
HTTM_PATH = "/usr/bin/httm"
ZFS_PATH = "/usr/sbin/zfs"
ZPOOL_PATH = "/usr/sbin/zpool"
SUDO_PATH = "/usr/bin/sudo"
DOAS_PATH = "/usr/bin/doas"


def make_which(*extra, **paths):
    """
    Return a stand-in for ``shutil.which()`` that resolves ``httm``,
    ``zfs`` and ``zpool`` plus any programs named in ``extra`` (resolved
    under ``/usr/bin``) or ``paths``.
    """
    known = {"httm": HTTM_PATH, "zfs": ZFS_PATH, "zpool": ZPOOL_PATH}
    known.update({name: f"/usr/bin/{name}" for name in extra})
    known.update(paths)
    return lambda name: known.get(name)


def have_root():
    """Return ``True`` if the test suite is running as the root user,
    and ``False`` otherwise.
    """
    return os.geteuid() == 0 and os.getegid() == 0

# Copyright Red Hat
#
# ounce/__init__.py - Snapshot guard wrapper package initialisation
#
# This file is part of the ounce project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Ounce top-level package.
"""
from ._ounce import *  # noqa: F401, F403
from ._ounce import __all__  # noqa: F401

__version__ = "0.1.0"

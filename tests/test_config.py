# Copyright Red Hat
#
# tests/test_config.py - ounce configuration tests
#
# This file is part of the ounce project.
#
# SPDX-License-Identifier: Apache-2.0
from unittest.mock import patch
import unittest
import tempfile
import logging
import os

import ounce
from ounce._config import OunceConfig, default_config_paths, OUNCE_CONFIG_ENV

log = logging.getLogger()


class OunceConfigTests(unittest.TestCase):
    """Test OunceConfig loading"""

    def setUp(self):
        log.debug("Preparing %s", self._testMethodName)
        self._tempdir = tempfile.TemporaryDirectory()

    def tearDown(self):
        log.debug("Tearing down (%s)", self._testMethodName)
        self._tempdir.cleanup()

    def _write_config(self, name, text):
        path = os.path.join(self._tempdir.name, name)
        with open(path, "w", encoding="utf8") as fp:
            fp.write(text)
        return path

    def test_from_file_missing(self):
        config = OunceConfig.from_file([os.path.join(self._tempdir.name, "nope")])
        self.assertEqual(config, OunceConfig())

    def test_from_file_no_global_section(self):
        path = self._write_config("ounce.conf", "[Other]\nSuffix = ignored\n")
        self.assertEqual(OunceConfig.from_file([path]), OunceConfig())

    def test_from_file(self):
        path = self._write_config(
            "ounce.conf", "[Global]\nSuffix = hourly\nUTC = yes\n"
        )
        config = OunceConfig.from_file([path])
        self.assertEqual(config.suffix, "hourly")
        self.assertTrue(config.utc)

    def test_from_file_later_overrides(self):
        system = self._write_config("system.conf", "[Global]\nSuffix = sys\nUTC = yes\n")
        user = self._write_config("user.conf", "[Global]\nSuffix = mine\n")
        config = OunceConfig.from_file([system, user])
        self.assertEqual(config.suffix, "mine")
        self.assertTrue(config.utc)

    def test_from_file_bad_bool(self):
        path = self._write_config("ounce.conf", "[Global]\nUTC = sometimes\n")
        with self.assertRaises(ounce.OunceConfigError):
            OunceConfig.from_file([path])

    def test_from_file_bad_suffix(self):
        path = self._write_config("ounce.conf", "[Global]\nSuffix = two words\n")
        with self.assertRaises(ounce.OunceConfigError):
            OunceConfig.from_file([path])

    def test_from_file_parse_error(self):
        path = self._write_config("ounce.conf", "Suffix = no section\n")
        with self.assertRaises(ounce.OunceConfigError):
            OunceConfig.from_file([path])

    def test_from_file_percent_suffix(self):
        path = self._write_config("ounce.conf", "[Global]\nSuffix = 50%off\n")
        config = OunceConfig.from_file([path])
        self.assertEqual(config.suffix, "50%off")

    def test_from_file_percent_reference_literal(self):
        path = self._write_config(
            "ounce.conf", "[Global]\nSuffix = %(home)s\nUTC = no\n"
        )
        self.assertEqual(OunceConfig.from_file([path]).suffix, "%(home)s")

    def test_from_file_not_utf8(self):
        path = os.path.join(self._tempdir.name, "ounce.conf")
        with open(path, "wb") as fp:
            fp.write(b"[Global]\nSuffix = caf\xe9\n")
        with self.assertRaisesRegex(ounce.OunceConfigError, "parsing configuration"):
            OunceConfig.from_file([path])

    def test_default_config_paths_override(self):
        with patch.dict(os.environ, {OUNCE_CONFIG_ENV: "/tmp/ounce-test.conf"}):
            self.assertEqual(default_config_paths(), ["/tmp/ounce-test.conf"])

    def test_default_config_paths_xdg(self):
        env = {"XDG_CONFIG_HOME": "/home/tester/.cfg", OUNCE_CONFIG_ENV: ""}
        with patch.dict(os.environ, env):
            self.assertEqual(
                default_config_paths(),
                ["/etc/ounce/ounce.conf", "/home/tester/.cfg/ounce/ounce.conf"],
            )

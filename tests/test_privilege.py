# Copyright Red Hat
#
# tests/test_privilege.py - privilege escalation and grant tests
#
# This file is part of the ounce project.
#
# SPDX-License-Identifier: Apache-2.0
from unittest.mock import MagicMock, patch
import unittest
import logging

import ounce
from ounce.callouts import _privilege as privilege
from ounce.callouts import _grant as grant

from tests import ZFS_PATH, ZPOOL_PATH, SUDO_PATH, DOAS_PATH, have_root

log = logging.getLogger()


class FindEscalationProgramTests(unittest.TestCase):
    """Test escalation program discovery order"""

    @patch("ounce.callouts._privilege.which")
    def test_prefers_sudo(self, mock_which):
        mock_which.side_effect = lambda name: f"/usr/bin/{name}"
        self.assertEqual(privilege.find_escalation_program(), SUDO_PATH)
        mock_which.assert_called_once_with("sudo")

    @patch("ounce.callouts._privilege.which")
    def test_falls_back_to_doas(self, mock_which):
        mock_which.side_effect = {"doas": DOAS_PATH, "pkexec": "/usr/bin/pkexec"}.get
        self.assertEqual(privilege.find_escalation_program(), DOAS_PATH)

    @patch("ounce.callouts._privilege.which")
    def test_falls_back_to_pkexec(self, mock_which):
        mock_which.side_effect = {"pkexec": "/usr/bin/pkexec"}.get
        self.assertEqual(privilege.find_escalation_program(), "/usr/bin/pkexec")
        self.assertEqual(
            [c[0][0] for c in mock_which.call_args_list], ["sudo", "doas", "pkexec"]
        )

    @patch("ounce.callouts._privilege.which")
    def test_none_found(self, mock_which):
        mock_which.return_value = None
        with self.assertRaisesRegex(ounce.OuncePrivilegeError, "sudo"):
            privilege.find_escalation_program()

    @patch("ounce.callouts._privilege.which")
    def test_not_cached(self, mock_which):
        mock_which.side_effect = [SUDO_PATH, None, DOAS_PATH]
        self.assertEqual(privilege.find_escalation_program(), SUDO_PATH)
        self.assertEqual(privilege.find_escalation_program(), DOAS_PATH)

    def test_is_privileged_user(self):
        self.assertEqual(privilege.is_privileged_user(), have_root())


class ParsePoolListTests(unittest.TestCase):
    def test_header_filtered(self):
        self.assertEqual(grant.parse_pool_list("NAME\nrpool\ntank\n"), ["rpool", "tank"])

    def test_no_header(self):
        self.assertEqual(grant.parse_pool_list("rpool\n"), ["rpool"])

    def test_pool_named_like_header(self):
        self.assertEqual(
            grant.parse_pool_list("NAME\nNAMESPACE\nNAME\n"), ["NAMESPACE", "NAME"]
        )

    def test_empty(self):
        self.assertEqual(grant.parse_pool_list(""), [])
        self.assertEqual(grant.parse_pool_list("NAME\n"), [])


@patch("ounce.callouts._grant.current_user_name", return_value="tester")
@patch("ounce.callouts._grant.is_privileged_user", return_value=False)
class GivePrivilegesTests(unittest.TestCase):
    """Test the privilege grant flow"""

    def setUp(self):
        log.debug("Preparing %s", self._testMethodName)
        self.resolver = MagicMock(return_value=SUDO_PATH)

    @patch("ounce.callouts._grant.run")
    def test_give_privileges(self, mock_run, _priv, _user):
        mock_run.side_effect = [
            MagicMock(returncode=0, stdout="NAME\nrpool\ntank\n"),
            MagicMock(returncode=0),
            MagicMock(returncode=0),
        ]
        pools = grant.give_privileges(ZFS_PATH, ZPOOL_PATH, resolve_escalation=self.resolver)
        self.assertEqual(pools, ["rpool", "tank"])
        calls = [c[0][0] for c in mock_run.call_args_list]
        self.assertEqual(calls[0], [SUDO_PATH, ZPOOL_PATH, "list", "-o", "name"])
        self.assertEqual(
            calls[1], [SUDO_PATH, ZFS_PATH, "allow", "tester", "mount,snapshot", "rpool"]
        )
        self.assertEqual(
            calls[2], [SUDO_PATH, ZFS_PATH, "allow", "tester", "mount,snapshot", "tank"]
        )

    @patch("ounce.callouts._grant.run")
    def test_refuses_privileged_user(self, mock_run, mock_priv, _user):
        mock_priv.return_value = True
        with self.assertRaisesRegex(ounce.OunceGrantError, "unprivileged user"):
            grant.give_privileges(ZFS_PATH, ZPOOL_PATH, resolve_escalation=self.resolver)
        mock_run.assert_not_called()
        self.resolver.assert_not_called()

    @patch("ounce.callouts._grant.run")
    def test_pool_list_failure(self, mock_run, _priv, _user):
        mock_run.return_value = MagicMock(returncode=1, stdout="")
        with self.assertRaises(ounce.OunceGrantError):
            grant.give_privileges(ZFS_PATH, ZPOOL_PATH, resolve_escalation=self.resolver)

    @patch("ounce.callouts._grant.run")
    def test_grant_failure_stops(self, mock_run, _priv, _user):
        mock_run.side_effect = [
            MagicMock(returncode=0, stdout="NAME\nrpool\ntank\n"),
            MagicMock(returncode=1),
        ]
        with self.assertRaisesRegex(ounce.OunceGrantError, "rpool"):
            grant.give_privileges(ZFS_PATH, ZPOOL_PATH, resolve_escalation=self.resolver)
        self.assertEqual(mock_run.call_count, 2)

    @patch("ounce.callouts._grant.run")
    def test_no_pools(self, mock_run, _priv, _user):
        mock_run.return_value = MagicMock(returncode=0, stdout="NAME\n")
        with self.assertLogs(grant._log, level="WARNING"):
            pools = grant.give_privileges(
                ZFS_PATH, ZPOOL_PATH, resolve_escalation=self.resolver
            )
        self.assertEqual(pools, [])
        self.assertEqual(mock_run.call_count, 1)

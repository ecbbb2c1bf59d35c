import importlib
import io
import json
import logging
import os
import unittest
from unittest.mock import patch

import yaml

from authkeys import config
from authkeys.cmd import check

DATA_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "data"))
KEYS_DIR = os.path.join(DATA_DIR, "keys")
VALID = os.path.join(KEYS_DIR, "authorized_keys")
INVALID = os.path.join(KEYS_DIR, "authorized_keys_invalid")
UNKNOWN_OPTION = os.path.join(KEYS_DIR, "authorized_keys_unknown_option")
MISSING = os.path.join(KEYS_DIR, "non-existent")
BINARY = os.path.join(KEYS_DIR, "authorized_keys_binary")


class TestCheck(unittest.TestCase):
    def setUp(self):
        # Do not pick up an installed configuration
        config.CONFIG_FILES = {"check": [os.path.join(DATA_DIR, "config", "non-existent.conf")]}
        config.CONFIG_ENV = {"check": ""}
        config._config = None
        self.authkeys_logger = logging.getLogger("authkeys")
        self.level = self.authkeys_logger.level

    def tearDown(self):
        importlib.reload(config)
        self.authkeys_logger.setLevel(self.level)

    def _run(self, argv):
        with patch("sys.stdout", new_callable=io.StringIO) as stdout:
            status = check.main(argv)
        return status, stdout.getvalue()

    def test_valid_file(self):
        status, output = self._run([VALID])
        self.assertEqual(status, check.EXIT_OK)
        self.assertEqual(
            output,
            f"{VALID}:\n"
            "  2 ssh-ed25519 alice@workstation\n"
            "  3 ssh-rsa backup@vault [restrict, command]\n"
            "  4 ecdsa-sha2-nistp256 ci runner [no-agent-forwarding, no-pty, from]\n",
        )

    def test_invalid_file(self):
        with self.assertLogs("authkeys.check", level="ERROR") as log:
            status, output = self._run([INVALID])
        self.assertEqual(status, check.EXIT_INVALID)
        self.assertEqual(output, "")
        self.assertIn("parsing failed on line 2", log.output[0])

    def test_invalid_file_verbose(self):
        with self.assertLogs("authkeys.check", level="DEBUG") as log:
            status, _ = self._run(["-v", INVALID])
        self.assertEqual(status, check.EXIT_INVALID)
        self.assertTrue(any("as a bare public key" in line for line in log.output))
        self.assertTrue(any("with leading options" in line for line in log.output))

    def test_unreadable_file(self):
        with self.assertLogs("authkeys.check", level="ERROR") as log:
            status, output = self._run([VALID, MISSING, INVALID])
        self.assertEqual(status, check.EXIT_UNREADABLE)
        # Valid files are still reported
        self.assertTrue(output.startswith(f"{VALID}:\n"))
        self.assertNotIn(INVALID, output)
        self.assertTrue(any(f"Could not read {MISSING}" in line for line in log.output))

    def test_undecodable_file(self):
        with self.assertLogs("authkeys.check", level="ERROR") as log:
            status, output = self._run([BINARY, VALID])
        self.assertEqual(status, check.EXIT_UNREADABLE)
        # Files after the undecodable one are still checked
        self.assertTrue(output.startswith(f"{VALID}:\n"))
        self.assertNotIn(BINARY, output)
        self.assertIn(f"Could not read {BINARY}", log.output[0])

    def test_unknown_options(self):
        with self.assertLogs("authkeys.check", level="WARNING") as log:
            status, output = self._run([UNKNOWN_OPTION])
        self.assertEqual(status, check.EXIT_OK)
        self.assertIn("WARNING", log.output[0])
        self.assertIn("frobnicate", log.output[0])
        self.assertIn("[restrict, frobnicate]", output)

    def test_strict_options(self):
        with self.assertLogs("authkeys.check", level="ERROR"):
            status, output = self._run(["--strict-options", UNKNOWN_OPTION])
        self.assertEqual(status, check.EXIT_INVALID)
        self.assertEqual(output, "")

        status, _ = self._run(["--strict-options", VALID])
        self.assertEqual(status, check.EXIT_OK)

    def test_strict_options_from_environment(self):
        with patch.dict(os.environ, {"AUTHKEYS_CHECK_STRICT_OPTIONS": "true"}):
            with self.assertLogs("authkeys.check", level="ERROR"):
                status, _ = self._run([UNKNOWN_OPTION])
        self.assertEqual(status, check.EXIT_INVALID)

    def test_default_path(self):
        with patch.dict(os.environ, {"AUTHKEYS_CHECK_AUTHORIZED_KEYS": VALID}):
            status, output = self._run([])
        self.assertEqual(status, check.EXIT_OK)
        self.assertTrue(output.startswith(f"{VALID}:\n"))

    def test_json_format(self):
        status, output = self._run(["--format", "JSON", VALID])
        self.assertEqual(status, check.EXIT_OK)
        data = json.loads(output)
        lines = data[VALID]["lines"]
        self.assertEqual(len(lines), 5)
        self.assertEqual(lines[3]["key"]["options"][0], {"name": "restrict", "value": None})
        self.assertEqual(lines[4]["key"]["comments"], "ci runner")

    def test_yaml_format_from_environment(self):
        with patch.dict(os.environ, {"AUTHKEYS_CHECK_FORMAT": "yaml"}):
            status, output = self._run([VALID])
        self.assertEqual(status, check.EXIT_OK)
        data = yaml.safe_load(output)
        self.assertEqual(data[VALID]["lines"][0], {"line": 0, "comment": "# Deploy keys for build hosts"})
        self.assertEqual(data[VALID]["lines"][2]["key"]["key_type"], "ssh-ed25519")

    def test_invalid_format_in_configuration(self):
        with patch.dict(os.environ, {"AUTHKEYS_CHECK_FORMAT": "xml"}):
            with self.assertLogs("authkeys.check", level="ERROR") as log:
                status, output = self._run([VALID])
        self.assertEqual(status, check.EXIT_INVALID)
        self.assertEqual(output, "")
        self.assertIn("Invalid format 'xml'", log.output[0])

    def test_invalid_format_argument(self):
        with patch("sys.stderr", new_callable=io.StringIO):
            with self.assertRaises(SystemExit) as cm:
                check.get_arg_parser().parse_args(["--format", "xml"])
        self.assertEqual(cm.exception.code, 2)

    def test_arg_parser_defaults(self):
        args = check.get_arg_parser().parse_args([])
        self.assertEqual(args.files, [])
        self.assertIsNone(args.format)
        self.assertIsNone(args.strict_options)
        self.assertFalse(args.verbose)


if __name__ == "__main__":
    unittest.main()

import json
import unittest

import yaml

from authkeys.openssh import parse_file
from authkeys.openssh.report import (
    authorization_to_dict,
    keys_file_to_dict,
    render,
    unknown_options,
)

KEYS_TEXT = (
    "# managed by hand\n"
    "ssh-rsa AAAAtHUM alice@example.org\n"
    'no-pty,frobnicate,command="/bin/true" ssh-ed25519 AAAAtHUM\n'
    "restrict,Frobnicate,tunnel=\"0\" ssh-dss AAAAtHUM bob\n"
)


class TestReport(unittest.TestCase):
    def setUp(self):
        self.keys_file = parse_file(KEYS_TEXT)

    def test_authorization_to_dict(self):
        authorization = list(self.keys_file.keys())[1]
        self.assertEqual(
            authorization_to_dict(authorization),
            {
                "options": [
                    {"name": "no-pty", "value": None},
                    {"name": "frobnicate", "value": None},
                    {"name": "command", "value": "/bin/true"},
                ],
                "key_type": "ssh-ed25519",
                "encoded_key": "AAAAtHUM",
                "comments": "",
            },
        )

    def test_keys_file_to_dict(self):
        data = keys_file_to_dict(self.keys_file)
        self.assertEqual(len(data["lines"]), 4)
        self.assertEqual(data["lines"][0], {"line": 0, "comment": "# managed by hand"})
        self.assertEqual(data["lines"][1]["line"], 1)
        self.assertEqual(data["lines"][1]["key"]["key_type"], "ssh-rsa")
        self.assertEqual(data["lines"][3]["key"]["comments"], "bob")

    def test_unknown_options(self):
        # Names are reported as written, in order of first appearance
        self.assertEqual(unknown_options(self.keys_file), ["frobnicate", "Frobnicate"])
        self.assertEqual(unknown_options(parse_file("restrict ssh-rsa AAAAtHUM\n")), [])

    def test_render_text(self):
        self.assertEqual(
            render({"keys": self.keys_file}),
            "keys:\n"
            "  1 ssh-rsa alice@example.org\n"
            "  2 ssh-ed25519 [no-pty, frobnicate, command]\n"
            "  3 ssh-dss bob [restrict, Frobnicate, tunnel]\n",
        )

    def test_render_json(self):
        data = json.loads(render({"keys": self.keys_file}, "json"))
        self.assertEqual(data, {"keys": keys_file_to_dict(self.keys_file)})

    def test_render_yaml(self):
        output = render({"a": self.keys_file, "b": parse_file("")}, "yaml")
        data = yaml.safe_load(output)
        self.assertEqual(list(data), ["a", "b"])
        self.assertEqual(data["a"], keys_file_to_dict(self.keys_file))
        self.assertEqual(data["b"], {"lines": []})

    def test_render_unknown_format(self):
        self.assertRaises(ValueError, render, {"keys": self.keys_file}, "xml")


if __name__ == "__main__":
    unittest.main()

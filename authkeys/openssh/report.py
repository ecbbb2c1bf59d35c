"""Read-only reports of parsed authorized_keys files.

The structures produced here are meant for humans and other tools, they are
not a way to write authorized_keys files back.
"""

import json
from typing import Any, Dict, List

import yaml

from authkeys.openssh.models import CommentLine, KeyAuthorization, KeysFile

FORMATS = ("text", "json", "yaml")


def authorization_to_dict(authorization: KeyAuthorization) -> Dict[str, Any]:
    return {
        "options": [{"name": option.name, "value": option.value} for option in authorization.options],
        "key_type": str(authorization.key.key_type),
        "encoded_key": authorization.key.encoded_key,
        "comments": authorization.comments,
    }


def keys_file_to_dict(keys_file: KeysFile) -> Dict[str, Any]:
    lines: List[Dict[str, Any]] = []
    for index, line in enumerate(keys_file):
        if isinstance(line, CommentLine):
            lines.append({"line": index, "comment": line.text})
        else:
            lines.append({"line": index, "key": authorization_to_dict(line.authorization)})
    return {"lines": lines}


def unknown_options(keys_file: KeysFile) -> List[str]:
    """Option names not documented by sshd(8), in order of first appearance."""
    found: List[str] = []
    for authorization in keys_file.keys():
        for option in authorization.options:
            if not option.is_known and option.name not in found:
                found.append(option.name)
    return found


def _render_text(reports: Dict[str, KeysFile]) -> str:
    out = []
    for path, keys_file in reports.items():
        out.append(f"{path}:")
        for index, line in enumerate(keys_file):
            if isinstance(line, CommentLine):
                continue
            authorization = line.authorization
            entry = f"  {index} {authorization.key.key_type}"
            if authorization.comments:
                entry += f" {authorization.comments}"
            if authorization.options:
                entry += f" [{', '.join(option.name for option in authorization.options)}]"
            out.append(entry)
    return "\n".join(out) + "\n"


def render(reports: Dict[str, KeysFile], fmt: str = "text") -> str:
    if fmt == "text":
        return _render_text(reports)

    data = {path: keys_file_to_dict(keys_file) for path, keys_file in reports.items()}
    if fmt == "json":
        return json.dumps(data, indent=2) + "\n"
    if fmt == "yaml":
        return str(yaml.safe_dump(data, default_flow_style=False, sort_keys=False))

    raise ValueError(f"Unknown report format '{fmt}', expected one of {', '.join(FORMATS)}")

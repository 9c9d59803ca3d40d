"""Config file I/O through ruamel.yaml so hand-written comments survive rewrites."""

import os
import tempfile
from io import StringIO
from pathlib import Path
from typing import Any, Dict, Union

from ruamel.yaml import YAML


def _round_trip_yaml() -> YAML:
    yml = YAML()
    yml.preserve_quotes = True
    yml.indent(mapping=2, sequence=4, offset=2)
    return yml


def load_yaml(source: Union[str, Path, StringIO]) -> Dict[str, Any]:
    """Parse a YAML mapping.

    Args:
        source: Config file path, or a StringIO holding YAML text

    Returns:
        A ruamel CommentedMap, or {} when the document is empty
    """
    if isinstance(source, StringIO):
        return _round_trip_yaml().load(source) or {}
    with open(Path(source), encoding="utf-8") as f:
        return _round_trip_yaml().load(f) or {}


def save_yaml(data: Dict[str, Any], dest: Union[str, Path]) -> None:
    """Write a mapping to dest, replacing any existing file in one step.

    The document is written to a temporary file next to dest and renamed
    over it, so a reader never sees a half-written config.
    """
    path = Path(dest)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            _round_trip_yaml().dump(data, f)
        os.replace(tmp_name, path)
    except BaseException:
        os.unlink(tmp_name)
        raise

"""Loading schema and data documents from disk."""

import json
from pathlib import Path
from typing import Any

import yaml


def load_document(path: str | Path) -> Any:
    """Load a JSON or YAML document.

    ``.yaml`` and ``.yml`` files are read with PyYAML, everything else as JSON.

    Raises:
        FileNotFoundError: If the file doesn't exist
        json.JSONDecodeError / yaml.YAMLError: If the file cannot be parsed
        UnicodeDecodeError: If the file is not UTF-8 text
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Document not found: {path}")

    with open(path, encoding="utf-8") as f:
        if path.suffix.lower() in (".yaml", ".yml"):
            return yaml.safe_load(f)
        try:
            return json.load(f)
        except json.JSONDecodeError as e:
            raise json.JSONDecodeError(
                f"Invalid JSON in {path}: {e.msg}",
                e.doc,
                e.pos,
            ) from e

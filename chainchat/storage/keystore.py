"""
Key bundle persistence (JSON).

    {"ca": {"e": .., "n": .., "d": ..}, "server": {"e": .., "n": .., "d": ..}}

The bundle model validates ordering (n_CA > n_server) on load, so a
hand-edited file with swapped keys is rejected before any connection.
"""

import os

from chainchat.crypto.keys import KeyBundle


def save_bundle(bundle: KeyBundle, path: str) -> None:
    """Write the bundle, creating parent directories as needed."""
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(bundle.model_dump_json(indent=2))


def load_bundle(path: str) -> KeyBundle:
    """
    Read and validate a bundle.

    :raises FileNotFoundError: missing file
    :raises pydantic.ValidationError: malformed JSON or broken key ordering
    """
    with open(path, "r", encoding="utf-8") as f:
        return KeyBundle.model_validate_json(f.read())

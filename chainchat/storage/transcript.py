"""
Append-only transcript + transcript hash.

Each log line:
    seqno | ts | ciphertexts | key_fpr_hex

ciphertexts is the comma-separated list of character records of one
message; key_fpr_hex identifies the server key the chain ran under.
"""

import os
import argparse
import sys
from datetime import datetime, timezone
from hashlib import sha256
from typing import List, Optional


DEFAULT_TRANSCRIPTS_DIR = "transcripts"


class Transcript:
    """
    Handles one session's transcript file.
    """

    def __init__(self, path: str):
        self.path = path

    @classmethod
    def new(cls, prefix: str = "session", directory: Optional[str] = None) -> "Transcript":
        """
        Create a new transcript file path with timestamp.
        """
        directory = directory or DEFAULT_TRANSCRIPTS_DIR
        os.makedirs(directory, exist_ok=True)
        ts = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
        filename = f"{prefix}_{ts}.log"
        return cls(os.path.join(directory, filename))

    def append(
        self,
        seqno: int,
        ts_ms: int,
        ciphertext: List[int],
        key_fpr_hex: str,
    ) -> None:
        """
        Append a single line to the transcript.
        """
        values = ",".join(str(value) for value in ciphertext)
        line = f"{seqno}|{ts_ms}|{values}|{key_fpr_hex}\n"
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(line)

    def compute_hash(self) -> str:
        """
        Compute SHA-256 over the concatenation of all lines.
        Returns hex digest.
        """
        if not os.path.exists(self.path):
            raise FileNotFoundError(self.path)

        h = sha256()
        with open(self.path, "rb") as f:
            for chunk in iter(lambda: f.read(4096), b""):
                h.update(chunk)
        return h.hexdigest()

    def load_lines(self):
        """
        Return list of raw lines (str).
        """
        if not os.path.exists(self.path):
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            return [line.rstrip("\n") for line in f]


def _cli_verify(path: str) -> None:
    t = Transcript(path)
    h = t.compute_hash()
    print(f"[Transcript] {path}")
    print(f"[Transcript] Messages: {len(t.load_lines())}")
    print(f"[Transcript] SHA-256: {h}")


def main(argv=None):
    parser = argparse.ArgumentParser(prog="python -m chainchat.storage.transcript")
    parser.add_argument(
        "--verify",
        metavar="PATH",
        help="Compute and print transcript hash for given file",
    )
    args = parser.parse_args(argv)

    if args.verify:
        _cli_verify(args.verify)
    else:
        parser.print_help()


if __name__ == "__main__":
    main(sys.argv[1:])

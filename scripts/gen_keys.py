"""
Generate a CA + server key bundle for the chainchat server.
Generates:
    certs/keys.json   (CA and server key pairs, private exponents included)

Point KEYS_FILE at the output to have the server reuse these keys
instead of generating new ones at every start.
"""

import argparse
import os
import sys

from chainchat.crypto.keys import generate_key_bundle
from chainchat.storage.keystore import save_bundle

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

DEFAULT_OUT = os.path.join(BASE_DIR, "certs", "keys.json")


def main(argv=None):
    parser = argparse.ArgumentParser()
    parser.add_argument("--out", default=DEFAULT_OUT, help="where to write the bundle")
    args = parser.parse_args(argv)

    bundle = generate_key_bundle()
    save_bundle(bundle, args.out)

    print(f"[+] CA key:     e={bundle.ca.e} n={bundle.ca.n}")
    print(f"[+] Server key: e={bundle.server.e} n={bundle.server.n}")
    print(f"[+] Server key fingerprint: {bundle.server.fingerprint()}")
    print(f"[+] Key bundle written to: {args.out}")
    print("[!] DO NOT COMMIT the bundle: it holds both private exponents")


if __name__ == "__main__":
    main(sys.argv[1:])

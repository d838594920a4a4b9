import argparse
import socket
import sys
from typing import Optional, Tuple

from chainchat.channel import MessageReceiver
from chainchat.common.config import Config, load_env_config
from chainchat.common.errors import TransportError
from chainchat.common.transport import LineChannel
from chainchat.common.utils import now_ms
from chainchat.crypto.cipher import ChainCipher
from chainchat.crypto.keys import KeyBundle, generate_key_bundle
from chainchat.handshake import run_server_handshake
from chainchat.storage.keystore import load_bundle
from chainchat.storage.transcript import Transcript


# ------------- Key material -------------


def load_keys(config: Config) -> KeyBundle:
    """
    Key bundle for the whole process: KEYS_FILE when configured,
    otherwise generated once here. Never regenerated per session.
    """
    if config.keys_file:
        bundle = load_bundle(config.keys_file)
        print(f"[KEYS] Loaded key bundle from {config.keys_file}")
    else:
        bundle = generate_key_bundle()
        print("[KEYS] Generated fresh CA and server keys")

    ca, server = bundle.ca, bundle.server
    print(f"[KEYS] CA:             e={ca.e}  n={ca.n}  d={ca.d}")
    print(f"[KEYS] Server public:  e={server.e}  n={server.n}")
    print(f"[KEYS] Server private: d={server.d}  n={server.n}")
    return bundle


# ------------- Per-client session -------------


def serve_session(channel: LineChannel, bundle: KeyBundle, config: Config,
                  transcript: Optional[Transcript] = None) -> int:
    """
    Handshake, then decrypt messages until the client disconnects.

    Returns the number of complete messages received. Protocol errors
    propagate; a peer close during the message phase ends the session.
    """
    session = run_server_handshake(channel, bundle.ca, bundle.server, verbose=config.verbose)

    receiver = MessageReceiver(ChainCipher(bundle.server, session.nonce), verbose=config.verbose)
    key_fpr = bundle.server.fingerprint()
    count = 0

    print("[CHAT] Waiting for messages.")
    while True:
        try:
            record = channel.recv_record()
        except TransportError:
            if receiver.pending:
                print(f"[WARN] Client left mid-message; dropped {receiver.pending!r}")
            print("[CHAT] Client closed the session.")
            return count

        message = receiver.feed(record)
        if message is None:
            continue

        count += 1
        print(f"[CHAT] Encrypted message: {message.ciphertext_text}")
        print(f"[CHAT] Decrypted message: {message.plaintext}")
        if transcript is not None:
            transcript.append(
                seqno=count,
                ts_ms=now_ms(),
                ciphertext=message.ciphertext,
                key_fpr_hex=key_fpr,
            )


def handle_client(conn: socket.socket, addr: Tuple, bundle: KeyBundle, config: Config) -> None:
    """
    Run one connection to completion. Any failure ends this session only.
    """
    print(f"[+] Connection from {addr}")
    channel = LineChannel(conn, timeout=config.timeout)
    transcript = Transcript.new(prefix="server", directory=config.transcripts_dir)

    try:
        count = serve_session(channel, bundle, config, transcript)
        print(f"[*] Session closed after {count} message(s).")
    except (TransportError, ValueError) as e:
        print(f"[ERROR] {addr}: {type(e).__name__}: {e}")
    finally:
        channel.close()
        print(f"[-] Connection closed: {addr}")


# ------------- Main server loop -------------


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="python -m chainchat.server")
    parser.add_argument("port", nargs="?", type=int, help="port to listen on (overrides SERVER_PORT)")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    config = load_env_config()
    if args.port is not None:
        config = config.model_copy(update={"port": args.port})

    bundle = load_keys(config)

    family = socket.AF_INET6 if config.use_ipv6 else socket.AF_INET
    print(f"[CONFIG] Listening on {config.host}:{config.port}")

    with socket.socket(family, socket.SOCK_STREAM) as s:
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        s.bind((config.host, config.port))
        s.listen(5)

        # one client at a time; keys are shared by every session
        while True:
            print("[SERVER] Waiting for connections...")
            conn, addr = s.accept()
            handle_client(conn, addr, bundle, config)


if __name__ == "__main__":
    main(sys.argv[1:])

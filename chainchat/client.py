import argparse
import socket
import sys
from typing import Callable, Optional

from chainchat.channel import MessageSender, is_terminator
from chainchat.common.config import Config, load_env_config
from chainchat.common.transport import LineChannel
from chainchat.common.utils import now_ms
from chainchat.crypto.cipher import ChainCipher
from chainchat.handshake import HandshakeSession, run_client_handshake
from chainchat.storage.transcript import Transcript


# ------------------------ Chat Loop ------------------------

def chat_loop(
    channel: LineChannel,
    session: HandshakeSession,
    config: Config,
    read_line: Callable[[str], str] = input,
    transcript: Optional[Transcript] = None,
) -> int:
    """
    Encrypt and send each typed line until '.' (or end of input).

    Returns the number of messages sent.
    """
    sender = MessageSender(channel, ChainCipher(session.server_key, session.nonce),
                           verbose=config.verbose)
    key_fpr = session.server_key.fingerprint()
    count = 0

    print("[CHAT] You may now send encrypted messages. Type '.' to quit.\n")

    while True:
        try:
            text = read_line("Type here: ")
        except EOFError:
            break

        if is_terminator(text):
            break

        message = sender.send(text)
        count += 1
        print(f"[CHAT] Plain text message: {message.plaintext}")
        print(f"[CHAT] Encrypted message:  {message.ciphertext_text}")

        if transcript is not None:
            transcript.append(
                seqno=count,
                ts_ms=now_ms(),
                ciphertext=message.ciphertext,
                key_fpr_hex=key_fpr,
            )

    return count


# ------------------------ Main client flow ------------------------

def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="python -m chainchat.client")
    parser.add_argument("host", nargs="?", help="server host (overrides SERVER_HOST)")
    parser.add_argument("port", nargs="?", type=int, help="server port (overrides SERVER_PORT)")
    args = parser.parse_args(argv)
    if (args.host is None) != (args.port is None):
        parser.error("give both host and port, or neither")
    return args


def main(argv=None):
    args = parse_args(argv)
    config = load_env_config()
    if args.host is not None:
        config = config.model_copy(update={"host": args.host, "port": args.port})

    print(f"[CONFIG] Connecting to {config.host}:{config.port}...")

    step = "connect"
    try:
        with socket.create_connection((config.host, config.port), timeout=config.timeout) as s:
            print("[NET] Connected.")
            channel = LineChannel(s, timeout=config.timeout)

            step = "handshake"
            session = run_client_handshake(channel, verbose=config.verbose)

            step = "chat"
            transcript = Transcript.new(prefix="client", directory=config.transcripts_dir)
            count = chat_loop(channel, session, config, transcript=transcript)

            print(f"[*] Sent {count} message(s). Client is shutting down...")
            channel.close()
    except (OSError, ValueError) as e:
        # TransportError is an OSError, ProtocolError a ValueError
        print(f"[ERROR] {step}: {type(e).__name__}: {e}")
        raise SystemExit(1)


if __name__ == "__main__":
    main(sys.argv[1:])

"""Interactive terminal prompts used by the command-line client."""

from __future__ import annotations

import getpass
import sys
from pathlib import Path

from memorage.cert import KeyPair, PublicKey
from memorage.config import Config, Data
from memorage.errors import (
    IncorrectPeerError,
    UnexpectedEofError,
    UserCancelledError,
    from_os_error,
)
from memorage.fs import RootDirectory


def _eprint(message: str) -> None:
    print(message, file=sys.stderr)


def prompt(message: str) -> str:
    """Show ``message`` and return one line of input without its line ending."""
    sys.stdout.write(message)
    sys.stdout.flush()
    try:
        line = sys.stdin.readline()
    except OSError as exc:
        raise from_os_error(exc) from exc
    if not line:
        raise UnexpectedEofError()
    return line.removesuffix("\n").removesuffix("\r")


def securely_prompt(message: str) -> str:
    """Show ``message`` and read a line without echoing it."""
    sys.stdout.write(message)
    sys.stdout.flush()
    try:
        return getpass.getpass("")
    except EOFError as exc:
        raise UnexpectedEofError() from exc


def prompt_continue(reason: str) -> None:
    """Ask whether to proceed; raise :class:`UserCancelledError` on no."""
    print(reason)
    while True:
        answer = prompt("Do you wish to proceed [y/n]? ").lower()
        if answer in ("y", "yes"):
            return
        if answer in ("n", "no"):
            raise UserCancelledError()
        _eprint("Invalid choice")


def _canonicalize(text: str) -> Path:
    try:
        return Path(text).resolve(strict=True)
    except OSError as exc:
        raise from_os_error(exc) from exc


def _parse_u8(text: str) -> int | None:
    digits = text[1:] if text.startswith("+") else text
    if digits.isascii() and digits.isdigit():
        value = int(digits)
        if value <= 255:
            return value
    return None


def _proceed_chosen() -> bool:
    """Ask for a menu choice: True to proceed, False to customise."""
    while True:
        answer = prompt("> ")
        if answer == "":
            return True
        choice = _parse_u8(answer)
        if choice == 1:
            return True
        if choice == 2:
            return False
        if choice == 3:
            raise SystemExit(1)
        _eprint("Invalid choice")


def setup_config() -> Config:
    """Build a configuration interactively and create the peer storage directory."""
    config = Config()

    while True:
        answer = prompt("Backup path: ")
        if answer == "":
            _eprint("Backup path must be specified\n")
            continue
        backup_path = _canonicalize(answer)
        if backup_path.exists():
            break
        _eprint("Backup path does not exist\n")
    config.backup_path = backup_path

    while True:
        print("\nCurrent configuration options:\n")
        print(f"        backup path: {config.backup_path}")
        print(f"  peer storage path: {config.peer_storage_path}\n")

        print("1) Proceed with installation (default)")
        print("2) Customise installation")
        print("3) Cancel installation")

        if _proceed_chosen():
            break

        print("\nI'm going to ask you the value of each of these installation options.")
        print("You may simply press the Enter key to leave unchanged.\n")

        answer = prompt(f"Backup path [{config.backup_path}]: ")
        if answer != "":
            config.backup_path = _canonicalize(answer)

        print()

        answer = prompt(f"Peer storage path [{config.peer_storage_path}]: ")
        if answer != "":
            config.peer_storage_path = RootDirectory(_canonicalize(answer))

    try:
        config.peer_storage_path.path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise from_os_error(exc) from exc

    return config


def verify_peer(
    key_pair: KeyPair,
    peer: PublicKey,
    initiator: bool,
    path: str | Path | None = None,
) -> None:
    """Have the user confirm both keys, then save the pairing to ``path``."""
    if initiator:
        key_1, key_2 = key_pair.public, peer
    else:
        key_1, key_2 = peer, key_pair.public
    print(f"Key 1: {key_1}")
    print(f"Key 2: {key_2}")

    answer = prompt("Does your peer see the exact same keys? [y/n] ").strip().lower()
    if answer in ("y", "yes"):
        print("Saving peer")
        Data(key_pair=key_pair, peer=peer).save(path)
        print("Pairing successful")
        return
    _eprint("Aborting pairing process")
    raise IncorrectPeerError()
# memorage

Building blocks for encrypted, peer-to-peer backups. Two peers pair with
each other and store one another's files: every file is encrypted before
it leaves the machine, stored under a hashed name, and tracked through an
encrypted index so that only changed, renamed or deleted files need to be
sent on later backups.

Install with `pip install .`, or `pip install .[test]` to also get the
test dependencies (`pytest`, `pytest-asyncio`).

## Modules

- `memorage.errors` – the exception hierarchy, rooted at `MemorageError`;
  certificate errors derive from `CertError`. `from_os_error` maps an
  operating-system error onto `EntityNotFoundError`, `AlreadyExistsError`,
  `UnexpectedEofError` or `IoError`, keeping the original as `__cause__`.
- `memorage.bincode` – `Encoder` and `Decoder` for a compact
  little-endian binary format: fixed-width integers, one-byte booleans,
  and byte strings and text prefixed by a 64-bit length. `Decoder.finish`
  raises `SerdeError` if input is left over.
- `memorage.hashing` – a pure-Python BLAKE3 (`Blake3`, `blake3`) with
  32-byte digests, and `hash_reader` for hashing a binary file-like object.
- `memorage.util` – `wide_copy` and `async_wide_copy`, which copy a stream
  in 64 KiB chunks and return the number of bytes copied.
- `memorage.cert` – Ed25519 `KeyPair` (from a 32-byte seed, random via
  `KeyPair.from_entropy`, or PKCS#8 via `to_pkcs8`/`from_pkcs8`) and
  `PublicKey`; `gen_cert` builds a self-signed certificate for an IP
  address. `CertVerifier` accepts a single self-signed certificate whose
  signature checks out against its own key and, when a permitted key is
  given, whose key is that one; otherwise it raises
  `InvalidCertificateError`. `get_key_unchecked` returns the key of an
  already verified one-certificate chain.
- `memorage.crypto` – `Encrypted` values sealed with XChaCha20-Poly1305
  under a random 24-byte nonce (`Encrypted.encrypt(value, key)`,
  `encrypted.decrypt(key, kind)` where `kind` is `bytes`, `str` or a class
  with `decode`), and the frame helpers `encrypt_detached`,
  `decrypt_detached` and `split_encrypted_buf`.
- `memorage.fs` – `HashedPath` (the BLAKE3 hex name of a path),
  `RootDirectory` (whose `file_path` refuses any name that is not a single
  plain component), the file `Index` built with `Index.from_directory`,
  and `Index.difference`, which yields `WriteDifference`,
  `RenameDifference` and `DeleteDifference` items.
  `save_encrypted_index` and `load_encrypted_index` store an encrypted
  index on disk; loading a missing file returns `None`.
- `memorage.protocol` – the request messages (`PingRequest`,
  `GetIndexRequest`, `GetFileRequest`, `WriteRequest`, `RenameRequest`,
  `DeleteRequest`, `SetIndexRequest`, `CompleteRequest`) and their
  responses, `serialize_request`/`deserialize_request`,
  `serialize_response`/`deserialize_response` (a peer-reported error is
  raised as `ProtocolError`), packets framed by a big-endian 16-bit length
  (`encode_packet`, `read_packet`, and the asyncio `send_packet` and
  `receive_packet`), and `sleep_till`, which raises
  `MissedSynchronisationError` for a time already past.
- `memorage.config` – `Config`, `Data` and `DataWithoutPeer`, saved as
  TOML with `save` and read with `load`, by default in the platform's
  configuration and data directories.
- `memorage.prompt` – terminal prompts: `prompt`, `securely_prompt`,
  `prompt_continue` (raises `UserCancelledError` on "no"),
  `setup_config` and `verify_peer`, which saves a confirmed pairing as
  `Data`.

## Examples

Peer-supplied file names are confined to the storage directory:

```python
from memorage.errors import MaliciousFileNameError
from memorage.fs import RootDirectory

root = RootDirectory("/foo")
print(root.file_path("bar"))          # /foo/bar

for name in ("bar/baz", "/baz", ".."):
    try:
        root.file_path(name)
    except MaliciousFileNameError:
        print("rejected", name)
```

Encrypting a value:

```python
from memorage.cert import KeyPair
from memorage.crypto import Encrypted

key = KeyPair.from_entropy().private
sealed = Encrypted.encrypt(b"some bytes", key)
assert sealed.decrypt(key, bytes) == b"some bytes"
```

Saving and loading the configuration:

```python
from memorage.config import Config

config = Config()
config.save("config.toml")
assert Config.load("config.toml") == config
```

## What the package does not do

The package provides the pieces of a backup client, not a running one.
It has no command-line program, no client for the coordination server
used for pairing and scheduling, no public-address discovery, and no
network transport between peers: the protocol module encodes, decodes
and frames messages, but opening and holding connections is left to the
caller. Mnemonic recovery phrases are not provided either.

## Errors

Every failure is raised as a subclass of `memorage.errors.MemorageError`,
so callers can catch the whole family in one place or pick out specific
cases such as `DecryptionError`, `EntityNotFoundError` or
`UserCancelledError`.
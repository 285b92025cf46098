"""Resolution of secret references and decryption of age-encrypted values."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat


class SecretError(Exception):
    """A secret reference could not be resolved or decrypted."""


_EXTERNAL: dict[str, tuple[str, str, Callable[[str], list[str]]]] = {
    "op:": (
        "op",
        "1password secret reference is required",
        lambda ref: ["op", "read", ref],
    ),
    "aws-sm:": (
        "aws secrets manager",
        "aws secrets manager secret id is required",
        lambda ref: [
            "aws", "secretsmanager", "get-secret-value", "--secret-id", ref,
            "--query", "SecretString", "--output", "text",
        ],
    ),
    "gcloud-secret:": (
        "gcloud secret manager",
        "gcloud secret id is required",
        lambda ref: ["gcloud", "secrets", "versions", "access", "latest", "--secret", ref],
    ),
}


def _run_command(provider: str, argv: list[str]) -> str:
    try:
        completed = subprocess.run(argv, stdout=subprocess.PIPE, stderr=subprocess.PIPE, check=True)
    except (OSError, subprocess.CalledProcessError) as err:
        raise SecretError(f"{provider} secret resolve failed: {err}") from err
    output = completed.stdout
    if isinstance(output, bytes):
        output = output.decode("utf-8", errors="replace")
    return output.rstrip("\r\n")


def resolve(value: str) -> str:
    """Expand a secret reference; plain values are returned unchanged.

    Supported references are env:NAME, file:PATH, op:REF, aws-sm:SECRET_ID
    and gcloud-secret:SECRET_ID.
    """
    if value.startswith("env:"):
        name = value[len("env:"):]
        if not name:
            raise SecretError("secret env name is required")
        return os.environ.get(name, "")
    if value.startswith("file:"):
        path = value[len("file:"):]
        if not path:
            raise SecretError("secret file path is required")
        return Path(path).read_bytes().decode("utf-8", errors="replace").rstrip("\r\n")
    for prefix, (provider, missing, build) in _EXTERNAL.items():
        if value.startswith(prefix):
            reference = value[len(prefix):]
            if not reference:
                raise SecretError(missing)
            return _run_command(provider, build(reference))
    return value


_AGE_VERSION = b"age-encryption.org/v1"
_ARMOR_BEGIN = "-----BEGIN AGE ENCRYPTED FILE-----"
_ARMOR_END = "-----END AGE ENCRYPTED FILE-----"
_IDENTITY_HRP = "age-secret-key-"
_X25519_LABEL = b"age-encryption.org/v1/X25519"
_CHUNK_SIZE = 64 * 1024 + 16
_TAG_SIZE = 16
_BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_BECH32_GENERATORS = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)


@dataclass(frozen=True)
class _Stanza:
    kind: str
    args: tuple[str, ...]
    body: bytes


def _bech32_polymod(values: list[int]) -> int:
    checksum = 1
    for value in values:
        top = checksum >> 25
        checksum = ((checksum & 0x1FFFFFF) << 5) ^ value
        for bit, generator in enumerate(_BECH32_GENERATORS):
            if (top >> bit) & 1:
                checksum ^= generator
    return checksum


def _bech32_hrp_expand(hrp: str) -> list[int]:
    return [ord(ch) >> 5 for ch in hrp] + [0] + [ord(ch) & 31 for ch in hrp]


def _bech32_decode(text: str) -> tuple[str, bytes]:
    if text != text.lower() and text != text.upper():
        raise SecretError("invalid bech32 string: mixed case")
    text = text.lower()
    separator = text.rfind("1")
    if separator < 1 or separator + 7 > len(text):
        raise SecretError("invalid bech32 string: bad separator position")
    hrp = text[:separator]
    try:
        data = [_BECH32_CHARSET.index(ch) for ch in text[separator + 1:]]
    except ValueError:
        raise SecretError("invalid bech32 string: bad character") from None
    if _bech32_polymod(_bech32_hrp_expand(hrp) + data) != 1:
        raise SecretError("invalid bech32 string: bad checksum")
    accumulator = 0
    bits = 0
    decoded = bytearray()
    for value in data[:-6]:
        accumulator = ((accumulator << 5) | value) & 0xFFF
        bits += 5
        if bits >= 8:
            bits -= 8
            decoded.append((accumulator >> bits) & 0xFF)
    if bits >= 5 or accumulator & ((1 << bits) - 1):
        raise SecretError("invalid bech32 string: bad padding")
    return hrp, bytes(decoded)


def _parse_identities(data: bytes) -> list[X25519PrivateKey]:
    identities: list[X25519PrivateKey] = []
    lines = data.decode("utf-8", errors="replace").splitlines()
    for number, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if not line.upper().startswith("AGE-SECRET-KEY-1"):
            raise SecretError(f"error at line {number}: unknown identity type")
        hrp, key = _bech32_decode(line)
        if hrp != _IDENTITY_HRP or len(key) != 32:
            raise SecretError(f"error at line {number}: malformed secret key")
        identities.append(X25519PrivateKey.from_private_bytes(key))
    if not identities:
        raise SecretError("no secret keys found")
    return identities


def _b64_raw(text: bytes) -> bytes:
    if b"=" in text:
        raise SecretError("malformed base64 in age header")
    try:
        return base64.b64decode(text + b"=" * (-len(text) % 4), validate=True)
    except (binascii.Error, ValueError):
        raise SecretError("malformed base64 in age header") from None


def _dearmor(data: bytes) -> bytes:
    try:
        lines = data.decode("ascii").strip().splitlines()
    except UnicodeDecodeError:
        raise SecretError("malformed armored age file") from None
    if len(lines) < 2 or lines[0].strip() != _ARMOR_BEGIN or lines[-1].strip() != _ARMOR_END:
        raise SecretError("malformed armored age file")
    body = "".join(line.strip() for line in lines[1:-1])
    try:
        return base64.b64decode(body, validate=True)
    except (binascii.Error, ValueError):
        raise SecretError("malformed armored age file") from None


def _parse_header(data: bytes) -> tuple[list[_Stanza], bytes, bytes, bytes]:
    """Return the stanzas, the MAC-covered header, the MAC, and the payload."""
    position = 0

    def next_line() -> bytes:
        nonlocal position
        end = data.find(b"\n", position)
        if end < 0:
            raise SecretError("malformed age header")
        line = data[position:end]
        position = end + 1
        return line

    if next_line() != _AGE_VERSION:
        raise SecretError("unsupported or malformed age file")
    stanzas: list[_Stanza] = []
    while True:
        line_start = position
        line = next_line()
        if line.startswith(b"--- "):
            mac = _b64_raw(line[4:])
            return stanzas, data[:line_start + 3], mac, data[position:]
        if not line.startswith(b"-> "):
            raise SecretError("malformed age header")
        try:
            args = line[3:].decode("ascii").split(" ")
        except UnicodeDecodeError:
            raise SecretError("malformed age header") from None
        if not args or not args[0]:
            raise SecretError("malformed age stanza")
        body = bytearray()
        while True:
            chunk = next_line()
            if len(chunk) > 64:
                raise SecretError("malformed age stanza body")
            body += _b64_raw(chunk)
            if len(chunk) < 64:
                break
        stanzas.append(_Stanza(args[0], tuple(args[1:]), bytes(body)))


def _hkdf(key_material: bytes, salt: bytes | None, info: bytes) -> bytes:
    return HKDF(algorithm=hashes.SHA256(), length=32, salt=salt, info=info).derive(key_material)


def _unwrap_file_key(stanzas: list[_Stanza], identities: list[X25519PrivateKey]) -> bytes:
    for stanza in stanzas:
        if stanza.kind != "X25519" or len(stanza.args) != 1:
            continue
        share = _b64_raw(stanza.args[0].encode("ascii"))
        if len(share) != 32 or len(stanza.body) != 16 + _TAG_SIZE:
            raise SecretError("invalid X25519 recipient stanza")
        for identity in identities:
            public = identity.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
            try:
                shared = identity.exchange(X25519PublicKey.from_public_bytes(share))
            except ValueError:
                raise SecretError("invalid X25519 recipient stanza") from None
            if shared == bytes(32):
                raise SecretError("invalid X25519 recipient stanza")
            wrap_key = _hkdf(shared, share + public, _X25519_LABEL)
            try:
                return ChaCha20Poly1305(wrap_key).decrypt(bytes(12), stanza.body, None)
            except InvalidTag:
                continue
    raise SecretError("no identity matched any of the recipients")


def _decrypt_payload(file_key: bytes, payload: bytes) -> bytes:
    if len(payload) < 16:
        raise SecretError("missing age payload nonce")
    nonce, ciphertext = payload[:16], payload[16:]
    if not ciphertext:
        raise SecretError("missing age payload")
    aead = ChaCha20Poly1305(_hkdf(file_key, nonce, b"payload"))
    plaintext = bytearray()
    for counter, offset in enumerate(range(0, len(ciphertext), _CHUNK_SIZE)):
        chunk = ciphertext[offset:offset + _CHUNK_SIZE]
        last = offset + _CHUNK_SIZE >= len(ciphertext)
        if len(chunk) < _TAG_SIZE or (last and counter > 0 and len(chunk) == _TAG_SIZE):
            raise SecretError("malformed age payload chunk")
        chunk_nonce = counter.to_bytes(11, "big") + (b"\x01" if last else b"\x00")
        try:
            plaintext += aead.decrypt(chunk_nonce, chunk, None)
        except InvalidTag:
            raise SecretError("failed to decrypt and authenticate payload chunk") from None
    return bytes(plaintext)


def decrypt_age(ciphertext: str | bytes, identity_path: str) -> str:
    """Decrypt an armored or raw age payload with the identities in identity_path."""
    if not identity_path:
        raise SecretError("age identity is required")
    identities = _parse_identities(Path(identity_path).read_bytes())
    if isinstance(ciphertext, str):
        data = ciphertext.encode("utf-8", errors="surrogateescape")
    else:
        data = bytes(ciphertext)
    if data.startswith(_ARMOR_BEGIN.encode("ascii")):
        data = _dearmor(data)
    stanzas, header, mac, payload = _parse_header(data)
    file_key = _unwrap_file_key(stanzas, identities)
    expected = hmac.new(_hkdf(file_key, None, b"header"), header, hashlib.sha256).digest()
    if not hmac.compare_digest(expected, mac):
        raise SecretError("bad header MAC")
    return _decrypt_payload(file_key, payload).decode("utf-8", errors="replace")
import base64
import hashlib
import hmac
import os
import subprocess
from unittest import mock

import pytest
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
    PublicFormat,
)

from sqio.secret import SecretError, decrypt_age, resolve

_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
_GENERATORS = (0x3B6A57B2, 0x26508E6D, 0x1EA119FA, 0x3D4233DD, 0x2A1462B3)


def _polymod(values):
    checksum = 1
    for value in values:
        top = checksum >> 25
        checksum = ((checksum & 0x1FFFFFF) << 5) ^ value
        for bit, generator in enumerate(_GENERATORS):
            if (top >> bit) & 1:
                checksum ^= generator
    return checksum


def _bech32_encode(hrp, data):
    five = []
    acc = 0
    bits = 0
    for byte in data:
        acc = ((acc << 8) | byte) & 0xFFFF
        bits += 8
        while bits >= 5:
            bits -= 5
            five.append((acc >> bits) & 31)
    if bits:
        five.append((acc << (5 - bits)) & 31)
    expanded = [ord(c) >> 5 for c in hrp] + [0] + [ord(c) & 31 for c in hrp]
    mod = _polymod(expanded + five + [0] * 6) ^ 1
    checksum = [(mod >> 5 * (5 - i)) & 31 for i in range(6)]
    return hrp + "1" + "".join(_CHARSET[d] for d in five + checksum)


def _b64(data):
    return base64.b64encode(data).decode("ascii").rstrip("=")


def _hkdf(ikm, salt, info):
    return HKDF(algorithm=hashes.SHA256(), length=32, salt=salt, info=info).derive(ikm)


def _encrypt(plaintext, recipient):
    file_key = os.urandom(16)
    ephemeral = X25519PrivateKey.generate()
    share = ephemeral.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    shared = ephemeral.exchange(X25519PublicKey.from_public_bytes(recipient))
    wrap_key = _hkdf(shared, share + recipient, b"age-encryption.org/v1/X25519")
    body = ChaCha20Poly1305(wrap_key).encrypt(bytes(12), file_key, None)
    header = f"age-encryption.org/v1\n-> X25519 {_b64(share)}\n{_b64(body)}\n---".encode()
    mac = hmac.new(_hkdf(file_key, None, b"header"), header, hashlib.sha256).digest()
    nonce = os.urandom(16)
    payload_key = _hkdf(file_key, nonce, b"payload")
    chunk = ChaCha20Poly1305(payload_key).encrypt(bytes(11) + b"\x01", plaintext, None)
    return header + b" " + _b64(mac).encode() + b"\n" + nonce + chunk


def _armor(data):
    encoded = base64.b64encode(data).decode("ascii")
    lines = [encoded[i:i + 64] for i in range(0, len(encoded), 64)]
    return "-----BEGIN AGE ENCRYPTED FILE-----\n" + "\n".join(lines) + "\n-----END AGE ENCRYPTED FILE-----\n"


def _new_identity(tmp_path, name="key.txt"):
    key = X25519PrivateKey.generate()
    raw = key.private_bytes(Encoding.Raw, PrivateFormat.Raw, NoEncryption())
    public = key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    path = tmp_path / name
    path.write_text("# created for tests\n" + _bech32_encode("age-secret-key-", raw).upper() + "\n")
    return public, str(path)


def test_decrypt_armored(tmp_path):
    public, path = _new_identity(tmp_path)
    assert decrypt_age(_armor(_encrypt(b"secret", public)), path) == "secret"


def test_decrypt_raw_bytes(tmp_path):
    public, path = _new_identity(tmp_path)
    assert decrypt_age(_encrypt(b"hello world", public), path) == "hello world"


def test_decrypt_requires_identity():
    with pytest.raises(SecretError, match="age identity is required"):
        decrypt_age("payload", "")


def test_decrypt_missing_identity_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        decrypt_age("payload", str(tmp_path / "missing"))


def test_decrypt_bad_identity(tmp_path):
    path = tmp_path / "bad-key.txt"
    path.write_text("not an age identity")
    with pytest.raises(SecretError):
        decrypt_age("payload", str(path))


def test_decrypt_empty_identity_file(tmp_path):
    path = tmp_path / "empty.txt"
    path.write_text("# only a comment\n\n")
    with pytest.raises(SecretError, match="no secret keys found"):
        decrypt_age("payload", str(path))


def test_decrypt_not_encrypted(tmp_path):
    _, path = _new_identity(tmp_path)
    with pytest.raises(SecretError):
        decrypt_age("not encrypted", path)


def test_decrypt_wrong_identity(tmp_path):
    public, _ = _new_identity(tmp_path, "first.txt")
    _, other_path = _new_identity(tmp_path, "second.txt")
    with pytest.raises(SecretError, match="no identity matched"):
        decrypt_age(_armor(_encrypt(b"secret", public)), other_path)


def test_decrypt_tampered_payload(tmp_path):
    public, path = _new_identity(tmp_path)
    data = bytearray(_encrypt(b"secret", public))
    data[-1] ^= 0x01
    with pytest.raises(SecretError):
        decrypt_age(bytes(data), path)


def test_resolve_env(monkeypatch):
    monkeypatch.setenv("SQIO_SECRET_TEST", "from-env")
    assert resolve("env:SQIO_SECRET_TEST") == "from-env"


def test_resolve_file(tmp_path):
    path = tmp_path / "secret.txt"
    path.write_text("from-file\n")
    assert resolve(f"file:{path}") == "from-file"


def test_resolve_plain():
    assert resolve("plain") == "plain"


@pytest.mark.parametrize("value", ["file:", "env:", "op:", "aws-sm:", "gcloud-secret:"])
def test_resolve_empty_references(value):
    with pytest.raises(SecretError):
        resolve(value)


@mock.patch("subprocess.run")
def test_resolve_external_references(run):
    run.return_value = subprocess.CompletedProcess([], 0, stdout=b"resolved\n", stderr=b"")
    values = ["op:op://vault/item/password", "aws-sm:prod/db/password", "gcloud-secret:prod-db-password"]
    assert [resolve(value) for value in values] == ["resolved"] * 3
    calls = [call.args[0] for call in run.call_args_list]
    assert calls == [
        ["op", "read", "op://vault/item/password"],
        ["aws", "secretsmanager", "get-secret-value", "--secret-id", "prod/db/password",
         "--query", "SecretString", "--output", "text"],
        ["gcloud", "secrets", "versions", "access", "latest", "--secret", "prod-db-password"],
    ]


@mock.patch("subprocess.run", side_effect=subprocess.CalledProcessError(1, "op"))
def test_resolve_external_command_failure(run):
    with pytest.raises(SecretError, match="op secret resolve failed"):
        resolve("op:op://vault/item/password")


@mock.patch("subprocess.run", side_effect=FileNotFoundError("gcloud"))
def test_resolve_external_command_missing(run):
    with pytest.raises(SecretError, match="gcloud secret manager secret resolve failed"):
        resolve("gcloud-secret:prod-db-password")
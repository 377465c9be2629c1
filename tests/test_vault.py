import base64

import pytest

from core import vault as vault_module
from core.vault import CredentialVault, VaultError, generate_token

# Low iteration count keeps the suite fast; the blob format is unchanged.
FAST_ITERATIONS = 1000


@pytest.fixture
def vault():
    return CredentialVault("unit-test-secret", iterations=FAST_ITERATIONS)


def test_round_trip(vault):
    blob = vault.encrypt("ya29.access-token")
    assert vault.decrypt(blob) == "ya29.access-token"


def test_round_trip_unicode(vault):
    assert vault.decrypt(vault.encrypt("kéy-✓")) == "kéy-✓"


def test_same_plaintext_encrypts_differently(vault):
    assert vault.encrypt("token") != vault.encrypt("token")


def test_blob_layout(vault):
    raw = base64.b64decode(vault.encrypt("abc"))
    header = vault_module.SALT_LENGTH + vault_module.IV_LENGTH + vault_module.AUTH_TAG_LENGTH
    assert len(raw) == header + len("abc")


def test_tampered_blob_is_rejected(vault):
    raw = bytearray(base64.b64decode(vault.encrypt("refresh-token")))
    raw[-1] ^= 0x01
    with pytest.raises(VaultError):
        vault.decrypt(base64.b64encode(bytes(raw)).decode("ascii"))


def test_wrong_secret_is_rejected(vault):
    blob = vault.encrypt("refresh-token")
    other = CredentialVault("another-secret", iterations=FAST_ITERATIONS)
    with pytest.raises(VaultError):
        other.decrypt(blob)


@pytest.mark.parametrize("blob", ["", "not base64!!", base64.b64encode(b"short").decode()])
def test_malformed_blob_is_rejected(vault, blob):
    with pytest.raises(VaultError):
        vault.decrypt(blob)


def test_empty_plaintext_is_rejected(vault):
    with pytest.raises(VaultError):
        vault.encrypt("")


def test_empty_secret_is_rejected():
    with pytest.raises(VaultError):
        CredentialVault("  ")


def test_generate_token():
    token = generate_token()
    assert len(token) == 64
    int(token, 16)
    assert generate_token(8) != generate_token(8)
    with pytest.raises(VaultError):
        generate_token(0)


def test_vault_from_env(monkeypatch):
    monkeypatch.delenv("ENCRYPTION_KEY", raising=False)
    with pytest.raises(VaultError):
        vault_module.vault_from_env()

    monkeypatch.setenv("ENCRYPTION_KEY", "env-secret")
    assert isinstance(vault_module.vault_from_env(), CredentialVault)

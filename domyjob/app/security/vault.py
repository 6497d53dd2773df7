"""Symmetric encryption for stored IMAP/SMTP credentials.

Blob format: ``<iv_hex>:<ciphertext_hex>``. The ciphertext segment is the
AES-256-CBC ciphertext followed by a 32 byte HMAC-SHA256 tag computed over
``iv || ciphertext``. The tag is checked before anything is decrypted, so a
different key, a tampered IV or a tampered ciphertext raises
``DecryptionError`` instead of yielding wrong plaintext.

Both the AES key and the MAC key are derived from the configured secret with
HKDF. There is no key versioning: when ``ENCRYPTION_KEY`` changes every stored
blob has to be re-encrypted (see ``rotate_blob`` and ``scripts/rotate_key``).
"""
import json
import logging
import os
from typing import Any, Dict

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from ..core.config import DEV_ENCRYPTION_KEY, get_settings

logger = logging.getLogger(__name__)

IV_LENGTH = 16
TAG_LENGTH = 32
_HKDF_INFO = b'domyjob-credential-vault'


class DecryptionError(Exception):
    """Raised when a credential blob cannot be authenticated or decrypted."""


class CredentialVault:
    def __init__(self, secret: str):
        if not secret:
            raise ValueError('encryption secret must not be empty')
        material = HKDF(
            algorithm=hashes.SHA256(),
            length=64,
            salt=None,
            info=_HKDF_INFO,
        ).derive(secret.encode('utf-8'))
        self._enc_key = material[:32]
        self._mac_key = material[32:]

    def _tag(self, iv: bytes, ciphertext: bytes) -> hmac.HMAC:
        h = hmac.HMAC(self._mac_key, hashes.SHA256())
        h.update(iv + ciphertext)
        return h

    def encrypt(self, plaintext: str) -> str:
        iv = os.urandom(IV_LENGTH)
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode('utf-8')) + padder.finalize()
        encryptor = Cipher(algorithms.AES(self._enc_key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
        tag = self._tag(iv, ciphertext).finalize()
        return iv.hex() + ':' + (ciphertext + tag).hex()

    def decrypt(self, blob: str) -> str:
        iv_hex, sep, body_hex = (blob or '').partition(':')
        if not sep:
            raise DecryptionError('malformed credential blob: missing separator')
        try:
            iv = bytes.fromhex(iv_hex)
            body = bytes.fromhex(body_hex)
        except ValueError as e:
            raise DecryptionError('malformed credential blob: invalid hex') from e
        if len(iv) != IV_LENGTH or len(body) < TAG_LENGTH + IV_LENGTH:
            raise DecryptionError('malformed credential blob: bad length')
        ciphertext, tag = body[:-TAG_LENGTH], body[-TAG_LENGTH:]
        if len(ciphertext) % IV_LENGTH:
            raise DecryptionError('malformed credential blob: bad block size')
        try:
            self._tag(iv, ciphertext).verify(tag)
        except InvalidSignature as e:
            raise DecryptionError('credential blob failed authentication (wrong key or tampered data)') from e
        decryptor = Cipher(algorithms.AES(self._enc_key), modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
        try:
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            data = unpadder.update(padded) + unpadder.finalize()
            return data.decode('utf-8')
        except ValueError as e:
            raise DecryptionError('credential blob could not be decoded') from e

    def encrypt_credentials(self, credentials: Dict[str, Any]) -> str:
        return self.encrypt(json.dumps(credentials))

    def decrypt_credentials(self, blob: str) -> Dict[str, Any]:
        raw = self.decrypt(blob)
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise DecryptionError('credential blob does not contain JSON') from e
        if not isinstance(data, dict):
            raise DecryptionError('credential blob does not contain a JSON object')
        return data


def rotate_blob(blob: str, old: CredentialVault, new: CredentialVault) -> str:
    """Re-encrypt ``blob`` under ``new``. Raises DecryptionError if ``old`` is not the encrypting key."""
    return new.encrypt(old.decrypt(blob))


def get_vault() -> CredentialVault:
    secret = get_settings().encryption_key
    if not secret:
        logger.warning("ENCRYPTION_KEY not set; using development key")
        secret = DEV_ENCRYPTION_KEY
    return CredentialVault(secret)

"""
Secret cipher - Argon2id key derivation with AES-256-GCM.

The ciphertext is a compact JSON envelope, base64 encoded, carrying the KDF
parameters so records stay readable after the defaults change.
"""

import base64
import json
import secrets

from argon2.exceptions import HashingError
from argon2.low_level import Type, hash_secret_raw
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from chainkeep.config import CipherConfig
from chainkeep.exceptions import DecryptionFailed
from chainkeep.interfaces.cipher import SymmetricCipher

ENVELOPE_VERSION = 1
KEY_SIZE = 32  # AES-256
NONCE_SIZE = 12  # 96 bits, recommended for GCM
SALT_SIZE = 16


class AesGcmCipher(SymmetricCipher):
    """Password cipher: Argon2id-derived key, AES-256-GCM authenticated encryption.

    A wrong password fails the GCM tag check, so decryption can never
    return garbage.
    """

    def __init__(
        self,
        time_cost: int = 3,
        memory_cost: int = 65536,
        parallelism: int = 4,
    ) -> None:
        """Initialize the cipher.

        Args:
            time_cost: Argon2id iterations.
            memory_cost: Argon2id memory in KiB.
            parallelism: Argon2id lanes.
        """
        self._time_cost = time_cost
        self._memory_cost = memory_cost
        self._parallelism = parallelism

    @classmethod
    def from_config(cls, config: CipherConfig) -> "AesGcmCipher":
        """Create a cipher from configuration."""
        return cls(
            time_cost=config.time_cost,
            memory_cost=config.memory_cost,
            parallelism=config.parallelism,
        )

    @staticmethod
    def _derive_key(
        password: str, salt: bytes, time_cost: int, memory_cost: int, parallelism: int
    ) -> bytes:
        return hash_secret_raw(
            secret=password.encode("utf-8"),
            salt=salt,
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=KEY_SIZE,
            type=Type.ID,
        )

    def encrypt(self, plaintext: str, password: str) -> str:
        salt = secrets.token_bytes(SALT_SIZE)
        nonce = secrets.token_bytes(NONCE_SIZE)
        key = self._derive_key(
            password, salt, self._time_cost, self._memory_cost, self._parallelism
        )
        ciphertext = AESGCM(key).encrypt(nonce, plaintext.encode("utf-8"), None)

        envelope = {
            "v": ENVELOPE_VERSION,
            "kdf": {
                "t": self._time_cost,
                "m": self._memory_cost,
                "p": self._parallelism,
                "salt": salt.hex(),
            },
            "nonce": nonce.hex(),
            "ct": ciphertext.hex(),
        }
        return base64.b64encode(json.dumps(envelope).encode("utf-8")).decode("ascii")

    def decrypt(self, ciphertext: str, password: str) -> str:
        try:
            envelope = json.loads(base64.b64decode(ciphertext, validate=True))
            if envelope.get("v") != ENVELOPE_VERSION:
                raise DecryptionFailed(
                    f"Unsupported ciphertext version: {envelope.get('v')}"
                )
            kdf = envelope["kdf"]
            salt = bytes.fromhex(kdf["salt"])
            nonce = bytes.fromhex(envelope["nonce"])
            data = bytes.fromhex(envelope["ct"])
            key = self._derive_key(password, salt, kdf["t"], kdf["m"], kdf["p"])
        except DecryptionFailed:
            raise
        except (ValueError, KeyError, TypeError, AttributeError, HashingError) as e:
            raise DecryptionFailed("Malformed ciphertext") from e

        try:
            plaintext = AESGCM(key).decrypt(nonce, data, None)
        except (InvalidTag, ValueError) as e:
            raise DecryptionFailed("Wrong password or tampered ciphertext") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecryptionFailed("Decrypted data is not text") from e

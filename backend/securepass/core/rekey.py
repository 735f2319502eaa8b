from typing import Any

from securepass.core.crypto import MASTER_MODE, CryptoError, ciphertext_mode, decrypt_value
from securepass.core.errors import DecryptionFailure


class Rekeyer:
    """
    Moves ciphertext from a backup's key material to the store's active key.

    ``cipher`` is anything with ``encrypt(plaintext) -> ciphertext`` bound to
    the active key (the storage engine itself, in production).
    """

    def __init__(self, cipher: Any):
        self.cipher = cipher

    def decrypt_envelope(self, ciphertext: str, key_material: str) -> str:
        # Wrong key and corrupt bytes are deliberately indistinguishable.
        try:
            return decrypt_value(ciphertext, key_material)
        except CryptoError as exc:
            raise DecryptionFailure() from exc

    def rekey_secret(self, secret_ciphertext: str, key_material: str) -> str:
        # Per-record secrets must be sealed with the raw backup key: a
        # passphrase-derived one costs a full KDF run per record.
        try:
            mode = ciphertext_mode(secret_ciphertext)
        except CryptoError as exc:
            raise DecryptionFailure() from exc
        if mode != MASTER_MODE:
            raise DecryptionFailure("Unsupported key derivation for an individual secret")
        plaintext = self.decrypt_envelope(secret_ciphertext, key_material)
        return self.cipher.encrypt(plaintext)

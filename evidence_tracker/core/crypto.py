import os
import hashlib
import uuid
from pathlib import Path
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from .config import settings

NONCE_SIZE = 12
TAG_SIZE = 16


def storage_dir() -> Path:
    path = Path(settings.storage_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def compute_sha256(data: bytes) -> str:
    """Compute SHA256 hash of data"""
    return hashlib.sha256(data).hexdigest()


def generate_safe_filename() -> str:
    """Generate a safe random filename"""
    return f"{uuid.uuid4()}.bin"


def encrypt_file_data(plaintext: bytes) -> tuple[str, str]:
    """
    Encrypt photo data using AES-256-GCM and write it to storage.
    Returns: (cipher_filename, sha256_hex of the plaintext)
    """
    sha256_hex = compute_sha256(plaintext)
    nonce = os.urandom(NONCE_SIZE)

    encryptor = Cipher(algorithms.AES(settings.aes_key), modes.GCM(nonce)).encryptor()
    ciphertext = encryptor.update(plaintext) + encryptor.finalize()

    # On-disk layout: nonce(12) + ciphertext + tag(16)
    cipher_filename = generate_safe_filename()
    with open(storage_dir() / cipher_filename, "wb") as f:
        f.write(nonce + ciphertext + encryptor.tag)

    return cipher_filename, sha256_hex


def decrypt_file_data(cipher_filename: str) -> bytes:
    """Read and decrypt a stored file. Raises FileNotFoundError if it is gone."""
    cipher_path = storage_dir() / cipher_filename
    if not cipher_path.exists():
        raise FileNotFoundError(f"Encrypted file not found: {cipher_filename}")

    with open(cipher_path, "rb") as f:
        encrypted_data = f.read()

    nonce = encrypted_data[:NONCE_SIZE]
    tag = encrypted_data[-TAG_SIZE:]
    ciphertext = encrypted_data[NONCE_SIZE:-TAG_SIZE]

    decryptor = Cipher(algorithms.AES(settings.aes_key), modes.GCM(nonce, tag)).decryptor()
    return decryptor.update(ciphertext) + decryptor.finalize()


def remove_file(cipher_filename: str) -> None:
    """Delete a stored file; missing files are ignored."""
    (storage_dir() / cipher_filename).unlink(missing_ok=True)

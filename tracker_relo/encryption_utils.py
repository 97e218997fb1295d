import base64
import logging
import keyring
from keyring.errors import KeyringError
from cryptography.fernet import Fernet, InvalidToken

from .utils import ConfigError

# --- Constants for Keyring Service ---
# These identify the application to the OS keychain.
KEYRING_SERVICE_NAME = "tracker-relo"
KEYRING_USERNAME = "encryption_key"

# The prefix to identify encrypted values in the config file.
ENCRYPTION_PREFIX = "ENC:"

def _get_encryption_key() -> bytes:
    """
    Retrieves the encryption key from the OS keychain.
    If the key does not exist, it generates a new one, stores it,
    and returns it.
    """
    try:
        key_str = keyring.get_password(KEYRING_SERVICE_NAME, KEYRING_USERNAME)
        if key_str:
            logging.debug("Found existing encryption key in OS keychain.")
            return base64.urlsafe_b64decode(key_str)

        logging.info("No encryption key found. Generating a new one and storing it in the OS keychain.")
        new_key = Fernet.generate_key()
        keyring.set_password(KEYRING_SERVICE_NAME, KEYRING_USERNAME, base64.urlsafe_b64encode(new_key).decode('utf-8'))
        return new_key
    except KeyringError as e:
        # Headless Linux usually needs a DBus session and a SecretService backend.
        raise ConfigError(f"Could not access the OS keychain: {e}") from e

def is_encrypted(value: str) -> bool:
    return isinstance(value, str) and value.startswith(ENCRYPTION_PREFIX)

def encrypt_password(password_to_encrypt: str) -> str:
    """
    Encrypts a password using the key from the OS keychain.
    Returns a string containing the encrypted data, prefixed for identification.
    """
    if not password_to_encrypt:
        return ""

    f = Fernet(_get_encryption_key())
    encrypted_data = f.encrypt(password_to_encrypt.encode('utf-8'))
    return f"{ENCRYPTION_PREFIX}{base64.b64encode(encrypted_data).decode('utf-8')}"

def decrypt_password(encrypted_password_str: str) -> str:
    """
    Decrypts a password using the key from the OS keychain.
    Values without the prefix are returned unchanged.
    """
    if not is_encrypted(encrypted_password_str):
        return encrypted_password_str

    try:
        encrypted_data = base64.b64decode(encrypted_password_str[len(ENCRYPTION_PREFIX):])
        f = Fernet(_get_encryption_key())
        return f.decrypt(encrypted_data).decode('utf-8')
    except (InvalidToken, ValueError) as e:
        # A config file copied from another machine will not match this keychain.
        raise ConfigError("Password decryption failed; the data is corrupt or the encryption key has changed.") from e

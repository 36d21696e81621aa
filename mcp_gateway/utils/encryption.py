"""
Encryption utilities for sensitive data like bot tokens
"""
from cryptography.fernet import Fernet, InvalidToken

from mcp_gateway.errors import ConfigurationError


def get_fernet(encryption_key: str) -> Fernet:
    """Get Fernet instance for encryption/decryption"""
    if not encryption_key:
        raise ConfigurationError("ENCRYPTION_KEY not set in environment variables")

    # Ensure the key is bytes
    key = encryption_key
    if isinstance(key, str):
        key = key.encode()

    try:
        return Fernet(key)
    except ValueError as e:
        raise ConfigurationError("ENCRYPTION_KEY is not a valid Fernet key") from e


def encrypt_token(fernet: Fernet, token: str) -> str:
    """
    Encrypt a token string

    Args:
        fernet: Fernet instance from get_fernet()
        token: Plain text token

    Returns:
        Encrypted token as string
    """
    encrypted = fernet.encrypt(token.encode())
    return encrypted.decode()


def decrypt_token(fernet: Fernet, encrypted_token: str) -> str:
    """
    Decrypt a token string

    Args:
        fernet: Fernet instance from get_fernet()
        encrypted_token: Encrypted token string

    Returns:
        Decrypted plain text token

    Raises:
        cryptography.fernet.InvalidToken: wrong key or tampered ciphertext
    """
    decrypted = fernet.decrypt(encrypted_token.encode())
    return decrypted.decode()


__all__ = ["get_fernet", "encrypt_token", "decrypt_token", "InvalidToken"]

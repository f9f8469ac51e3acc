from functools import lru_cache
from cryptography.fernet import Fernet, InvalidToken
from ..config import get_settings


@lru_cache
def get_cipher() -> Fernet:
    settings = get_settings()
    if not settings.FIELD_ENCRYPTION_KEY:
        raise RuntimeError("FIELD_ENCRYPTION_KEY is not set")
    return Fernet(settings.FIELD_ENCRYPTION_KEY.encode("utf-8"))


def encrypt_field(value: str) -> str:
    if value == "":
        return value
    return get_cipher().encrypt(value.encode("utf-8")).decode("utf-8")


def decrypt_field(token: str) -> str:
    if token == "":
        return token
    try:
        return get_cipher().decrypt(token.encode("utf-8")).decode("utf-8")
    except InvalidToken:
        raise RuntimeError("Stored patient detail could not be decrypted; check FIELD_ENCRYPTION_KEY")

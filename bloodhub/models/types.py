from sqlalchemy import Text
from sqlalchemy.types import TypeDecorator
from ..services.encryption import encrypt_field, decrypt_field


class EncryptedText(TypeDecorator):
    """Free-text clinical detail stored as a Fernet token."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return encrypt_field(str(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return decrypt_field(value)

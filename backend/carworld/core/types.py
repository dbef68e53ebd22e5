"""Column types shared by all models"""
import uuid

from sqlalchemy import TypeDecorator, String


def generate_uuid() -> str:
    return str(uuid.uuid4())


class GUID(TypeDecorator):
    """
    UUID primary and foreign keys kept as 36 character strings.

    The same schema then works on SQLite and PostgreSQL, and ids reach the API
    layer as plain strings whether a uuid.UUID or a str was bound.
    """
    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return str(value)
        return str(value).lower()

    def process_result_value(self, value, dialect):
        return None if value is None else str(value)

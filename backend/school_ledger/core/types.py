"""Shared column types and helpers for the ledger models"""
import enum
import uuid
from datetime import datetime
from typing import List, Type

from sqlalchemy import TypeDecorator, String, Enum as SQLEnum


def generate_uuid() -> str:
    """Generate a UUID string"""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, the convention for every DateTime column"""
    return datetime.utcnow()


def _enum_values(enum_cls: Type[enum.Enum]) -> List[str]:
    return [member.value for member in enum_cls]


def enum_column(enum_cls: Type[enum.Enum]) -> SQLEnum:
    """Enum column storing member values (``"ISSUED"``) rather than names"""
    return SQLEnum(
        enum_cls,
        values_callable=_enum_values,
        native_enum=False,
        validate_strings=True,
        length=32,
    )


class GUID(TypeDecorator):
    """Platform-independent GUID type stored as VARCHAR(36)"""
    impl = String(36)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is not None:
            return str(value)
        return value

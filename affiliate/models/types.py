"""
Standard type definitions for database models.

Provides consistent types for monetary and rate fields across all models.
"""

from enum import Enum

from sqlalchemy import DECIMAL
from sqlalchemy import Enum as SQLEnum


# Standard money type for prices, base amounts and commissions
# Precision: 18 digits total, 8 after decimal point
# Range: up to 9,999,999,999.99999999
MoneyType = DECIMAL(18, 8)

# Commission rate stored as a fraction
# Precision: 5 digits total, 4 after decimal point
# Suitable for: 0.2000, 0.3000, 1.0000
RateType = DECIMAL(5, 4)


def enum_column_type(enum_cls: type[Enum], length: int = 20) -> SQLEnum:
    """
    Build a non-native enum column type that stores enum values.

    Args:
        enum_cls: Enum class to store
        length: VARCHAR length

    Returns:
        SQLAlchemy Enum type
    """
    return SQLEnum(
        enum_cls,
        native_enum=False,
        length=length,
        validate_strings=True,
        values_callable=lambda members: [m.value for m in members],
    )

"""
Natural-language filtering of arrays and objects.
"""
from .service import (
    FILTER_TYPES,
    FilterService,
    FilterError,
    FilterInputError,
    InvalidFilterTypeError,
    create_filter_service,
)

__all__ = [
    'FILTER_TYPES',
    'FilterService',
    'FilterError',
    'FilterInputError',
    'InvalidFilterTypeError',
    'create_filter_service',
]

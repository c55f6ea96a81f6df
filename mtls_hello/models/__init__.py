"""
Models package for the mTLS hello application.
"""

from .config import Config, ConfigValidationError, ConfigValidationResult
from .response import HelloResponse

__all__ = [
    'Config',
    'ConfigValidationError',
    'ConfigValidationResult',
    'HelloResponse'
]

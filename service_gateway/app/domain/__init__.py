"""
Domain layer for the gateway: the request pipeline and error translation.
"""

from .error_translator import ErrorTranslator, TranslatedError
from .pipeline import GatewayPipeline

__all__ = [
    "ErrorTranslator",
    "GatewayPipeline",
    "TranslatedError",
]

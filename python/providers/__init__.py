"""
Data provider adapters for the Persona people-search backend.
"""

from providers.client import (
    Category,
    ProviderClient,
    HttpProviderClient,
    build_request_body,
)

__all__ = [
    'Category',
    'ProviderClient',
    'HttpProviderClient',
    'build_request_body',
]

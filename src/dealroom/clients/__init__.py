"""
External service clients for the Dealroom pipeline.
"""

from .object_storage import ObjectStorageClient
from .openai_client import OpenAIClient
from .postgres_client import DealStore

__all__ = [
    'DealStore',
    'ObjectStorageClient',
    'OpenAIClient',
]

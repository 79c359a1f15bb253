"""
Configuration management for the Dealroom pipeline.

Loads settings from environment variables with sensible defaults.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file from project root
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / '.env'
if _env_file.exists():
    load_dotenv(_env_file)


class Config:
    """Configuration settings loaded from environment."""

    # Object storage sidecar
    OBJECT_STORAGE_URL: str = os.getenv('OBJECT_STORAGE_URL', '')
    OBJECT_STORAGE_TOKEN: str = os.getenv('OBJECT_STORAGE_TOKEN', '')

    # Pipeline limits (characters)
    TEXT_PREVIEW_CHARS: int = int(os.getenv('TEXT_PREVIEW_CHARS', '8000'))
    CONTEXT_DOC_CHARS: int = int(os.getenv('CONTEXT_DOC_CHARS', '4000'))
    EXTRACTED_TEXT_MAX_CHARS: int = int(os.getenv('EXTRACTED_TEXT_MAX_CHARS', '50000'))

    # Pipeline limits (completion tokens)
    FACT_MAX_TOKENS: int = int(os.getenv('FACT_MAX_TOKENS', '500'))
    SUMMARY_MAX_TOKENS: int = int(os.getenv('SUMMARY_MAX_TOKENS', '2000'))
    STREAM_MAX_TOKENS: int = int(os.getenv('STREAM_MAX_TOKENS', '4096'))

    # Logging
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO')
    LOG_JSON: bool = os.getenv('LOG_JSON', 'false').lower() in ('1', 'true', 'yes')


# Singleton config instance
config = Config()

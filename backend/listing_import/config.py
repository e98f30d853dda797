"""
Configuration Management
========================

Centralized configuration for the listing import pipeline.
"""

import os
from typing import Dict, Any, Optional
from dotenv import load_dotenv

# Load environment variables from .env file (project root)
project_root = os.path.abspath(os.path.join(os.path.dirname(os.path.abspath(__file__)), '..', '..'))
load_dotenv(os.path.join(project_root, '.env'))


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == '':
        return default
    return float(value)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """Application configuration"""

    # Server Configuration
    HOST = os.getenv('HOST', '127.0.0.1')
    PORT = int(os.getenv('PORT', 8081))
    DEBUG = _env_bool('DEBUG', False)
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

    # AI Configuration
    ANTHROPIC_API_KEY = os.getenv('ANTHROPIC_API_KEY') or os.getenv('CLAUDE_API_KEY')
    CLAUDE_MODEL = os.getenv('CLAUDE_MODEL', 'claude-sonnet-4-20250514')
    ENABLE_AI_FEATURES = _env_bool('ENABLE_AI_FEATURES', False)
    AI_MIN_INTERVAL_SECONDS = _env_float('AI_MIN_INTERVAL_SECONDS', 1.0)
    AI_MAX_ATTEMPTS = int(os.getenv('AI_MAX_ATTEMPTS', 3))
    AI_RETRY_DELAY_SECONDS = _env_float('AI_RETRY_DELAY_SECONDS', 2.0)

    # Network Configuration
    FETCH_TIMEOUT_SECONDS = _env_float('FETCH_TIMEOUT_SECONDS', 15.0)
    IMAGE_TIMEOUT_SECONDS = _env_float('IMAGE_TIMEOUT_SECONDS', 10.0)
    IMAGE_DOWNLOAD_DELAY_SECONDS = _env_float('IMAGE_DOWNLOAD_DELAY_SECONDS', 0.5)
    PROXY_CACHE_SECONDS = int(os.getenv('PROXY_CACHE_SECONDS', 3600))

    # Storage Configuration
    STORAGE_MODE = os.getenv('STORAGE_MODE', 'files')  # "files" or "supabase"
    STORAGE_DIR = os.getenv('STORAGE_DIR', 'uploads')
    STORAGE_BASE_URL = os.getenv('STORAGE_BASE_URL', 'http://127.0.0.1:8081/uploads')
    SUPABASE_URL = os.getenv('SUPABASE_URL')
    SUPABASE_SERVICE_ROLE_KEY = os.getenv('SUPABASE_SERVICE_ROLE_KEY')
    SUPABASE_BUCKET = os.getenv('SUPABASE_BUCKET', 'listing-images')

    @classmethod
    def is_ai_enabled(cls, api_key: Optional[str] = None) -> bool:
        """AI features need both the feature switch and an API key."""
        return cls.ENABLE_AI_FEATURES and bool(api_key or cls.ANTHROPIC_API_KEY)

    @classmethod
    def to_dict(cls) -> Dict[str, Any]:
        """Export configuration as dictionary (secrets omitted)"""
        return {
            'host': cls.HOST,
            'port': cls.PORT,
            'debug': cls.DEBUG,
            'log_level': cls.LOG_LEVEL,
            'claude_model': cls.CLAUDE_MODEL,
            'ai_enabled': cls.is_ai_enabled(),
            'storage_mode': cls.STORAGE_MODE,
            'storage_dir': cls.STORAGE_DIR,
            'supabase_bucket': cls.SUPABASE_BUCKET,
        }


# Global config instance
config = Config()

#!/usr/bin/env python3
"""Modular configuration system for the commerce platform

Configuration hierarchy:
- commerce_config: Money precision, stock defaults, event topics
- logging_config: Logging configuration
"""
import os
from dotenv import load_dotenv
from .logging_config import LoggingConfig, setup_logging
from .commerce_config import CommerceConfig

# Load environment file based on ENV
env = os.getenv("ENV") or os.getenv("ENVIRONMENT", "development")
env_files = {
    "development": "deployment/environments/dev.env",
    "dev": "deployment/environments/dev.env",
    "testing": "deployment/environments/test.env",
    "test": "deployment/environments/test.env",
    "staging": "deployment/environments/staging.env",
    "production": "deployment/environments/production.env",
}
env_file = env_files.get(env, "deployment/environments/dev.env")
load_dotenv(env_file, override=False)

# Create global settings instance
settings = CommerceConfig.from_env()

def get_settings() -> CommerceConfig:
    """Get global settings instance"""
    return settings

def reload_settings() -> CommerceConfig:
    """Reload settings from environment"""
    global settings
    settings = CommerceConfig.from_env()
    return settings

__all__ = [
    # Main config
    'CommerceConfig',
    'get_settings',
    'reload_settings',
    'settings',
    # Sub-configs
    'LoggingConfig',
    'setup_logging',
]

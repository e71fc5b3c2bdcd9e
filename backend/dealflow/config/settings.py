"""
Configuration for the application, deal and contract workflow
"""
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, Any, Optional
import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


# Development configuration
DEV_CONFIG = {
    'log_level': 'DEBUG',
    'storage_backend': 'firestore',
    'void_on_decline': True,
    'default_template_type': 'standard_endorsement',
    'default_term_months': 12,
    'notify_enabled': True,
}

# Production configuration
PROD_CONFIG = {
    'log_level': 'INFO',
    'storage_backend': 'firestore',
    'void_on_decline': True,
    'default_template_type': 'standard_endorsement',
    'default_term_months': 12,
    'notify_enabled': True,
}

# Testing configuration
TEST_CONFIG = {
    'log_level': 'DEBUG',
    'storage_backend': 'memory',
    'void_on_decline': True,
    'default_template_type': 'standard_endorsement',
    'default_term_months': 12,
    'notify_enabled': False,
}


def get_config_for_environment(environment: str = None) -> Dict[str, Any]:
    """Get configuration for specific environment"""
    if not environment:
        environment = os.getenv('ENVIRONMENT', 'development').lower()

    configs = {
        'development': DEV_CONFIG,
        'dev': DEV_CONFIG,
        'production': PROD_CONFIG,
        'prod': PROD_CONFIG,
        'testing': TEST_CONFIG,
        'test': TEST_CONFIG,
    }

    return configs.get(environment, DEV_CONFIG)


def get_workflow_config(environment: str = None) -> Dict[str, Any]:
    """Environment defaults overridden by environment variables"""
    environment = (environment or os.getenv('ENVIRONMENT', 'development')).lower()
    defaults = get_config_for_environment(environment)

    return {
        'environment': environment,
        'log_level': os.getenv('LOG_LEVEL', defaults['log_level']).upper(),
        'storage_backend': os.getenv('STORAGE_BACKEND', defaults['storage_backend']).lower(),
        'firebase_credentials_path': os.getenv('FIREBASE_CREDENTIALS_PATH'),
        'void_on_decline': _env_bool('VOID_ON_DECLINE', defaults['void_on_decline']),
        'default_template_type': os.getenv('DEFAULT_TEMPLATE_TYPE', defaults['default_template_type']),
        'default_term_months': int(os.getenv('DEFAULT_TERM_MONTHS', str(defaults['default_term_months']))),
        'notify_enabled': _env_bool('NOTIFY_ENABLED', defaults['notify_enabled']),
    }


@dataclass(frozen=True)
class Settings:
    environment: str = 'development'
    log_level: str = 'INFO'
    storage_backend: str = 'firestore'
    firebase_credentials_path: Optional[str] = None
    void_on_decline: bool = True
    default_template_type: str = 'standard_endorsement'
    default_term_months: int = 12
    notify_enabled: bool = True

    def is_production(self) -> bool:
        return self.environment in ('production', 'prod')

    def uses_memory_storage(self) -> bool:
        return self.storage_backend == 'memory'


@lru_cache()
def get_settings() -> Settings:
    """Process-wide settings; call get_settings.cache_clear() after changing the environment"""
    config = get_workflow_config()
    if config['storage_backend'] not in ('firestore', 'memory'):
        raise ValueError(f"Unsupported STORAGE_BACKEND: {config['storage_backend']}")
    return Settings(**config)

"""
Configuration module for the billing engine.
"""
from .settings import (
    BillingEngineConfig,
    get_config,
    load_config,
    reload_config
)

__all__ = [
    'BillingEngineConfig',
    'get_config',
    'load_config',
    'reload_config'
]

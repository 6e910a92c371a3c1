"""
Configuration Module

Provides centralized configuration management for the regulator ensemble.
"""

from .settings import (
    DEFAULT_CONFIG,
    load_config,
    save_config,
    get_ensemble_config,
    get_solver_config,
    setup_logging
)

__all__ = [
    'DEFAULT_CONFIG',
    'load_config',
    'save_config',
    'get_ensemble_config',
    'get_solver_config',
    'setup_logging'
]

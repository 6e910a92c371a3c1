"""
System Configuration Settings

Global configuration for the regulator inference ensemble.
"""

import copy
import json
import logging
import os
import sys
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

# Default configuration
DEFAULT_CONFIG = {
    'system': {
        'name': 'Regulator Ensemble Inference',
        'version': '1.0.0',
        'log_level': 'INFO'
    },
    'ensemble': {
        'solvers': ['lasso', 'random-forest', 'pearson', 'spearman'],
        'reduction': 'mean_rank',
        'backend': 'sequential',
        'max_workers': None,
        'random_state': 42
    },
    'solvers': {
        'elastic-net': {
            'alpha': 0.5,
            'lambda_selection': 'permutation',
            'n_permutations': 50
        },
        'lasso': {
            'alpha': 0.9,
            'lambda_selection': 'permutation',
            'n_permutations': 50
        },
        'ridge': {
            'lambda_selection': 'permutation',
            'n_permutations': 50
        },
        'sqrt-lasso': {
            'max_iter': 100
        },
        'p-value-lasso': {
            'n_permutations': 100
        },
        'random-forest': {
            'n_estimators': 500,
            'n_jobs': None
        },
        'pearson': {},
        'spearman': {},
        'bayes-spike-slab': {
            'n_iter': 2000,
            'burn_in': 500
        }
    }
}


def setup_logging(verbose: bool = False, log_file: Optional[str] = None) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers
    )


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def load_config(config_path: str = None) -> Dict[str, Any]:
    """Load configuration from file merged over the defaults."""
    if config_path and os.path.exists(config_path):
        try:
            with open(config_path, 'r') as f:
                return _deep_merge(DEFAULT_CONFIG, json.load(f))
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load config from {config_path}: {e}")
    elif config_path:
        logger.warning(f"Config file {config_path} not found, using defaults")

    return copy.deepcopy(DEFAULT_CONFIG)


def save_config(config: Dict[str, Any], config_path: str) -> None:
    """Save configuration to file."""
    with open(config_path, 'w') as f:
        json.dump(config, f, indent=2)


def get_ensemble_config(config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Get ensemble configuration."""
    config = config if config is not None else load_config()
    return _deep_merge(DEFAULT_CONFIG['ensemble'], config.get('ensemble', {}))


def get_solver_config(solver_id: str, config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Get default parameters for one solver identifier."""
    config = config if config is not None else load_config()
    solvers = config.get('solvers', {})
    return copy.deepcopy(solvers.get(solver_id, {}))

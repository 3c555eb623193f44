"""
Configuration Module

Loads sealing/certification policies from YAML and persists PCR sets.
"""

from .policy_config import (
    PolicyConfig,
    load_policy,
    load_register_set,
    save_register_set,
)

__all__ = [
    'PolicyConfig',
    'load_policy',
    'load_register_set',
    'save_register_set',
]

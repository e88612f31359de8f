"""
Configuration loading for the tagfinder query engine.

Settings live in a YAML file and are validated into an EngineConfig.
"""

from .parser import (
    ConfigParser,
    ConfigParseResult,
    ConfigurationError,
    load_config,
    validate_config_file,
    create_config_template
)

__all__ = [
    'ConfigParser',
    'ConfigParseResult',
    'ConfigurationError',
    'load_config',
    'validate_config_file',
    'create_config_template'
]

"""
YAML configuration parser for the tagfinder query engine.

Loads engine settings from a YAML file, validates them through the pydantic
models and reports non-fatal warnings. When no file is given the usual
locations are searched and defaults are used if nothing is found.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional, List, Union
import logging
from dataclasses import dataclass

from ..models.config import EngineConfig, UnresolvedTagPolicy, validate_config_dict


logger = logging.getLogger(__name__)


@dataclass
class ConfigParseResult:
    """
    Result of configuration parsing operation.

    Attributes:
        config: The parsed and validated configuration
        warnings: List of non-fatal warnings
        config_path: Path to the configuration file used
        is_default: Whether default configuration was used
    """
    config: EngineConfig
    warnings: List[str]
    config_path: Optional[Path]
    is_default: bool


class ConfigurationError(Exception):
    """Raised when configuration parsing or validation fails."""
    pass


class ConfigParser:
    """
    Loads EngineConfig objects from YAML files.

    Files are searched in the current directory, the home directory and
    ~/.config/tagfinder, in that order. In strict mode any warning is
    treated as an error.
    """

    DEFAULT_CONFIG_NAMES = [
        '.tagfinder.yaml',
        '.tagfinder.yml',
        'tagfinder.yaml',
        'tagfinder.yml',
    ]

    def __init__(self, strict_mode: bool = False):
        """
        Initialize the configuration parser.

        Args:
            strict_mode: If True, treat warnings as errors
        """
        self.strict_mode = strict_mode
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def load_config(self, config_path: Optional[Union[str, Path]] = None) -> ConfigParseResult:
        """
        Load and parse configuration from file or use defaults.

        Args:
            config_path: Path to configuration file. If None, searches for default files.

        Returns:
            ConfigParseResult containing parsed configuration and metadata

        Raises:
            ConfigurationError: If configuration is invalid or file cannot be read
        """
        try:
            if config_path:
                config_path = Path(config_path)
                if not config_path.exists():
                    raise ConfigurationError(f"Configuration file not found: {config_path}")

                config_data = self._load_yaml_file(config_path)
                is_default = False
            else:
                config_path, config_data = self._find_and_load_config()
                is_default = config_data is None
                if is_default:
                    config_data = {}

            # Missing sections fall back to their model defaults
            validated_data = self._validate_config_data(config_data)
            engine_config = EngineConfig.from_dict(validated_data)

            warnings = engine_config.validate_configuration()
            warnings.extend(self._get_parser_warnings(engine_config, config_data, is_default))

            if self.strict_mode and warnings:
                raise ConfigurationError(f"Configuration warnings in strict mode: {'; '.join(warnings)}")

            self.logger.info(f"Configuration loaded successfully from {config_path or 'defaults'}")

            return ConfigParseResult(
                config=engine_config,
                warnings=warnings,
                config_path=config_path,
                is_default=is_default
            )

        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

    def _find_and_load_config(self) -> tuple[Optional[Path], Optional[Dict[str, Any]]]:
        """
        Find and load configuration file from default locations.

        Returns:
            Tuple of (config_path, config_data) or (None, None) if not found
        """
        search_paths = [
            Path.cwd(),
            Path.home(),
            Path.home() / '.config' / 'tagfinder',
        ]

        for search_path in search_paths:
            for config_name in self.DEFAULT_CONFIG_NAMES:
                config_file = search_path / config_name
                if config_file.exists() and config_file.is_file():
                    try:
                        config_data = self._load_yaml_file(config_file)
                        self.logger.info(f"Found configuration file: {config_file}")
                        return config_file, config_data
                    except ConfigurationError as e:
                        self.logger.warning(f"Failed to load {config_file}: {e}")
                        continue

        self.logger.info("No configuration file found, using defaults")
        return None, None

    def _load_yaml_file(self, file_path: Path) -> Dict[str, Any]:
        """
        Load and parse YAML file.

        Args:
            file_path: Path to YAML file

        Returns:
            Parsed YAML data as dictionary

        Raises:
            ConfigurationError: If file cannot be read or parsed
        """
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                content = f.read()

            if not content.strip():
                self.logger.warning(f"Configuration file is empty: {file_path}")
                return {}

            data = yaml.safe_load(content)
            if data is None:
                return {}

            if not isinstance(data, dict):
                raise ConfigurationError(f"Configuration file must contain a YAML object, got {type(data).__name__}")

            return data

        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {file_path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file {file_path}: {e}") from e

    def _validate_config_data(self, config_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validate configuration data structure and values.

        Raises:
            ConfigurationError: If configuration is invalid
        """
        try:
            return validate_config_dict(config_data)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    def _get_parser_warnings(
        self,
        config: EngineConfig,
        config_data: Dict[str, Any],
        is_default: bool,
    ) -> List[str]:
        """
        Get parser-specific warnings.

        Args:
            config: The parsed configuration
            config_data: Raw data the configuration was built from
            is_default: Whether default configuration was used

        Returns:
            List of warning messages
        """
        warnings = []

        if is_default:
            warnings.append("No configuration file found, using default settings")
            return warnings

        storage_path = config.storage.get_full_path()
        if 'storage' in config_data and not storage_path.parent.exists():
            warnings.append(f"Storage directory does not exist yet: {storage_path.parent}")

        if config.limits.max_query_length < 64:
            warnings.append(f"max_query_length ({config.limits.max_query_length}) rejects most realistic queries")

        return warnings

    def save_config(self, config: EngineConfig, output_path: Union[str, Path]) -> None:
        """
        Save configuration to YAML file.

        Args:
            config: Configuration to save
            output_path: Path where to save the configuration

        Raises:
            ConfigurationError: If file cannot be written
        """
        try:
            output_path = Path(output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)

            yaml_content = self._generate_yaml_with_comments(config.to_dict())
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(yaml_content)

            self.logger.info(f"Configuration saved to {output_path}")

        except OSError as e:
            raise ConfigurationError(f"Cannot write configuration file {output_path}: {e}") from e

    def _generate_yaml_with_comments(self, config_dict: Dict[str, Any]) -> str:
        """
        Generate YAML content with a comment above each section.

        Args:
            config_dict: Configuration dictionary

        Returns:
            YAML content with comments
        """
        lines = [
            "# tagfinder query engine configuration",
            "",
        ]

        sections = [
            ("limits", "Query size and complexity limits"),
            ("validation", "Tag resolution (unresolved_tags: empty | error)"),
            ("execution", "Storage timeouts and background workers"),
            ("storage", "Item library database"),
        ]

        for section_name, comment in sections:
            if section_name in config_dict:
                lines.append(f"# {comment}")
                section_yaml = yaml.dump({section_name: config_dict[section_name]},
                                         default_flow_style=False,
                                         sort_keys=False)
                lines.append(section_yaml.rstrip())
                lines.append("")

        return "\n".join(lines)

    def validate_config_file(self, config_path: Union[str, Path]) -> List[str]:
        """
        Validate a configuration file without loading it into an EngineConfig.

        Args:
            config_path: Path to configuration file

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        try:
            config_path = Path(config_path)

            if not config_path.exists():
                errors.append(f"Configuration file not found: {config_path}")
                return errors

            config_data = self._load_yaml_file(config_path)
            self._validate_config_data(config_data)

        except ConfigurationError as e:
            errors.append(str(e))

        return errors

    def get_config_template(self) -> str:
        """
        Get a template configuration file with all options and comments.

        Returns:
            YAML template as string
        """
        template = EngineConfig().to_dict()
        template['validation']['unresolved_tags'] = UnresolvedTagPolicy.EMPTY.value
        template['storage']['path'] = '~/.tagfinder/library.db'
        return self._generate_yaml_with_comments(template)


def load_config(config_path: Optional[Union[str, Path]] = None, strict_mode: bool = False) -> ConfigParseResult:
    """
    Convenience function to load configuration.

    Args:
        config_path: Path to configuration file (optional)
        strict_mode: Whether to treat warnings as errors

    Returns:
        ConfigParseResult containing parsed configuration

    Raises:
        ConfigurationError: If configuration is invalid
    """
    parser = ConfigParser(strict_mode=strict_mode)
    return parser.load_config(config_path)


def validate_config_file(config_path: Union[str, Path]) -> List[str]:
    """Convenience function to validate a configuration file."""
    parser = ConfigParser()
    return parser.validate_config_file(config_path)


def create_config_template(output_path: Union[str, Path]) -> None:
    """
    Create a template configuration file.

    Args:
        output_path: Where to save the template

    Raises:
        ConfigurationError: If template cannot be created
    """
    parser = ConfigParser()
    template_content = parser.get_config_template()

    try:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(template_content)

    except OSError as e:
        raise ConfigurationError(f"Cannot create template file {output_path}: {e}") from e

"""
Configuration data models for tagfinder.

This module defines the settings that shape query evaluation: input and
complexity limits, the validator's tag resolution policy, execution
timeouts and the location of the item library.
"""

from typing import Dict, List, Any
from pathlib import Path
from enum import Enum
from pydantic import BaseModel, Field, field_validator


class UnresolvedTagPolicy(Enum):
    """What the validator does with tag text that matches no tag."""
    EMPTY = "empty"
    ERROR = "error"


class LimitsConfig(BaseModel):
    """
    Limits that keep pathological queries from being compiled.

    Attributes:
        max_query_length: Maximum query length in characters
        max_nodes: Maximum number of AST nodes in one query
        max_in_list: Maximum number of values in one IN list
    """

    max_query_length: int = Field(4096, gt=0, description="Maximum query length in characters")
    max_nodes: int = Field(500, gt=0, description="Maximum number of AST nodes")
    max_in_list: int = Field(256, gt=0, description="Maximum number of values in an IN list")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return self.model_dump()


class ValidationConfig(BaseModel):
    """
    Semantic validation options.

    Attributes:
        unresolved_tags: Policy for tag text that matches no existing tag
        group_separator: Separator between group and value in "group:value"
    """

    unresolved_tags: UnresolvedTagPolicy = Field(
        UnresolvedTagPolicy.EMPTY,
        description="Policy for unresolved tag references"
    )
    group_separator: str = Field(":", min_length=1, max_length=1, description="Group/value separator")

    @field_validator('unresolved_tags', mode='before')
    @classmethod
    def validate_unresolved_tags(cls, v) -> UnresolvedTagPolicy:
        """Validate and convert the policy to its enum."""
        if isinstance(v, str):
            try:
                return UnresolvedTagPolicy(v.lower())
            except ValueError:
                raise ValueError(f"Invalid unresolved tag policy: {v}")
        return v

    @field_validator('group_separator')
    @classmethod
    def validate_group_separator(cls, v: str) -> str:
        if v.isalnum() or v.isspace() or v in '"(),':
            raise ValueError(f"Group separator must be punctuation, got {v!r}")
        return v

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        data = self.model_dump()
        data['unresolved_tags'] = self.unresolved_tags.value
        return data


class ExecutionConfig(BaseModel):
    """
    Settings for running compiled filters against storage.

    Attributes:
        timeout_seconds: Abort a storage query after this many seconds
        max_workers: Worker threads used for background evaluation
        progress_interval: SQLite VM steps between timeout checks
        slow_query_seconds: Queries slower than this are logged as warnings
    """

    timeout_seconds: float = Field(5.0, gt=0, description="Storage query timeout")
    max_workers: int = Field(2, gt=0, description="Background evaluation threads")
    progress_interval: int = Field(1000, gt=0, description="SQLite VM steps between timeout checks")
    slow_query_seconds: float = Field(1.0, gt=0, description="Slow query warning threshold")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return self.model_dump()


class StorageConfig(BaseModel):
    """
    Location of the item library database.

    Attributes:
        path: Path to the SQLite database file
    """

    path: str = Field(
        "~/.tagfinder/library.db",
        validate_default=True,
        description="SQLite database path",
    )

    @field_validator('path')
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Expand user path but keep relative paths relative."""
        if not v or not v.strip():
            raise ValueError("Storage path cannot be empty")
        if v.startswith('~'):
            return str(Path(v).expanduser())
        return v

    def get_full_path(self) -> Path:
        """Get the resolved database path."""
        return Path(self.path).resolve()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return self.model_dump()


class EngineConfig(BaseModel):
    """
    Main configuration for the tagfinder query engine.

    Attributes:
        limits: Input and complexity limits
        validation: Semantic validation options
        execution: Storage execution settings
        storage: Item library location
    """

    limits: LimitsConfig = Field(default_factory=LimitsConfig, description="Input and complexity limits")
    validation: ValidationConfig = Field(default_factory=ValidationConfig, description="Validation options")
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig, description="Execution settings")
    storage: StorageConfig = Field(default_factory=StorageConfig, description="Item library location")

    def validate_configuration(self) -> List[str]:
        """
        Check for settings that are legal but probably unintended.

        Returns:
            List of warning messages
        """
        warnings = []

        if self.validation.unresolved_tags == UnresolvedTagPolicy.ERROR:
            warnings.append(
                "Unresolved tags raise errors; queries mentioning a deleted tag will fail"
            )

        if self.limits.max_nodes > 5000:
            warnings.append(f"Very high max_nodes ({self.limits.max_nodes}) allows very expensive queries")

        if self.limits.max_in_list > 900:
            warnings.append(
                f"max_in_list ({self.limits.max_in_list}) approaches SQLite's bound parameter limit"
            )

        if self.execution.timeout_seconds > 60:
            warnings.append("Storage timeout above 60 seconds may leave the search box unresponsive")

        if self.execution.slow_query_seconds >= self.execution.timeout_seconds:
            warnings.append("slow_query_seconds is not below timeout_seconds; slow queries will time out first")

        return warnings

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary representation."""
        return {
            'limits': self.limits.to_dict(),
            'validation': self.validation.to_dict(),
            'execution': self.execution.to_dict(),
            'storage': self.storage.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EngineConfig':
        """Create configuration from dictionary representation."""
        return cls.model_validate(data)

    def __str__(self) -> str:
        """String representation of the configuration."""
        parts = [f"Max nodes: {self.limits.max_nodes}"]
        parts.append(f"Max IN list: {self.limits.max_in_list}")
        parts.append(f"Unresolved tags: {self.validation.unresolved_tags.value}")
        parts.append(f"Timeout: {self.execution.timeout_seconds}s")
        parts.append(f"Storage: {self.storage.path}")

        return " | ".join(parts)


KNOWN_SECTIONS = {
    'limits': LimitsConfig,
    'validation': ValidationConfig,
    'execution': ExecutionConfig,
    'storage': StorageConfig,
}


def validate_config_dict(config_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate a configuration dictionary using Pydantic.

    Args:
        config_data: Dictionary containing configuration data

    Returns:
        Validated and normalized configuration dictionary

    Raises:
        ValueError: If configuration is invalid
    """
    unknown = sorted(set(config_data) - set(KNOWN_SECTIONS))
    if unknown:
        raise ValueError(f"Unknown configuration sections: {', '.join(unknown)}")

    for section in KNOWN_SECTIONS:
        value = config_data.get(section)
        if value is not None and not isinstance(value, dict):
            raise ValueError(f"Section '{section}' must be a mapping, got {type(value).__name__}")

    try:
        return EngineConfig.from_dict(config_data).to_dict()
    except Exception as e:
        raise ValueError(f"Configuration validation failed: {e}")

"""
Catalog data models for tagfinder.

These are read-only records supplied by the storage collaborator: the
tracked items, the tags that can be attached to them and the groups those
tags belong to. The query engine never mutates them.
"""

from typing import Dict, Any, Optional
from datetime import datetime, timezone
from pydantic import BaseModel, ConfigDict, Field, field_validator


class TagGroup(BaseModel):
    """
    A named group of related tags (e.g. "Status", "Year").

    Attributes:
        id: Storage identifier
        name: Display name, unique across groups
    """

    id: int = Field(..., description="Storage identifier")
    name: str = Field(..., min_length=1, description="Group name")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Tag group name cannot be empty")
        return v.strip()


class Tag(BaseModel):
    """
    A tag value within a group.

    The same value may exist in several groups; it is unique within one.

    Attributes:
        id: Storage identifier
        group_id: Identifier of the owning TagGroup
        value: The tag text
    """

    id: int = Field(..., description="Storage identifier")
    group_id: int = Field(..., description="Owning tag group")
    value: str = Field(..., min_length=1, description="Tag text")


class ResolvedTagRef(BaseModel):
    """A tag id produced by resolving query text against the catalog."""

    model_config = ConfigDict(frozen=True)

    tag_id: int
    group_id: int


class Item(BaseModel):
    """
    A tracked file or directory.

    Attributes:
        id: Storage identifier
        path: Absolute path, unique across items
        is_directory: Whether the item is a directory
        size: Size in bytes (None for directories)
        modified_time: Last modification time as Unix epoch seconds
        created_at: Time the item was first tracked, Unix epoch seconds
    """

    id: int = Field(..., description="Storage identifier")
    path: str = Field(..., min_length=1, description="Absolute path of the item")
    is_directory: bool = Field(False, description="Whether the item is a directory")
    size: Optional[int] = Field(None, ge=0, description="Size in bytes")
    modified_time: Optional[int] = Field(None, description="Modification time (epoch seconds)")
    created_at: int = Field(0, description="Tracking time (epoch seconds)")

    @field_validator('path')
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Reject blank paths; the path is kept verbatim otherwise."""
        if not v.strip():
            raise ValueError("Item path cannot be empty")
        return v

    def get_size_human_readable(self) -> str:
        """Get item size in human-readable format."""
        if self.size is None:
            return "-"
        size = float(self.size)
        for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
            if size < 1024.0:
                return f"{size:.1f} {unit}"
            size /= 1024.0
        return f"{size:.1f} PB"

    def to_dict(self) -> Dict[str, Any]:
        """Convert the item to a dictionary with ISO timestamps."""
        data = self.model_dump()
        data['size_human'] = self.get_size_human_readable()
        if self.modified_time is not None:
            data['modified_iso'] = datetime.fromtimestamp(self.modified_time, timezone.utc).isoformat()
        return data

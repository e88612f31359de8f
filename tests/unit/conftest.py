"""
Shared fixtures for tagfinder unit tests.
"""

from datetime import datetime, timezone

import pytest

from tagfinder.models.catalog import Tag, TagGroup
from tagfinder.tools.snapshot import InMemoryCatalog
from tagfinder.tools.sqlite_store import SQLiteStore


FIXED_NOW = datetime(2024, 3, 10, 12, 0, 0, tzinfo=timezone.utc)

# 2024-01-01T00:00:00Z
JAN_1_2024 = 1704067200
DAY = 86400


def epoch(text: str) -> int:
    return int(datetime.fromisoformat(text).replace(tzinfo=timezone.utc).timestamp())


@pytest.fixture
def clock():
    """Clock frozen at FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def catalog():
    """Small tag catalog with a value shared by two groups."""
    groups = [
        TagGroup(id=1, name="Status"),
        TagGroup(id=2, name="Project"),
        TagGroup(id=3, name="Year"),
    ]
    tags = [
        Tag(id=1, group_id=1, value="Work"),
        Tag(id=2, group_id=1, value="Done"),
        Tag(id=3, group_id=2, value="work"),
        Tag(id=4, group_id=2, value="Apollo"),
        Tag(id=5, group_id=3, value="2024"),
        Tag(id=6, group_id=1, value="Work_Item"),
        Tag(id=7, group_id=2, value="100%"),
    ]
    return InMemoryCatalog(tags=tags, groups=groups)


def build_library(store: SQLiteStore) -> dict:
    """
    Populate a store with a mixed library.

    Returns:
        Mapping of short names to the ids of the created tags and items
    """
    ids = {}

    topic = store.add_group("Topic").id
    status = store.add_group("Status").id
    year = store.add_group("Year").id
    prefixes = {topic: "topic", status: "status", year: "year"}

    for group_id, value in [
        (topic, "vacation"), (topic, "work"), (topic, "project"), (topic, "family"),
        (status, "archived"), (status, "done"), (status, "Work"),
        (year, "2024"), (year, "2023"),
    ]:
        ids[f"{prefixes[group_id]}:{value.lower()}"] = store.add_tag(group_id, value).id

    items = [
        ("photos", "/photos", True, None, epoch("2024-01-05T08:00:00"), JAN_1_2024),
        ("beach", "/photos/beach.jpg", False, 5_000_000, epoch("2024-01-01T10:00:00"), JAN_1_2024),
        ("party", "/photos/Party.JPG", False, 20_000_000, epoch("2024-01-15T18:30:00"), JAN_1_2024 + DAY),
        ("jpeg", "/photos/photo.jpeg", False, 3_000, epoch("2023-12-31T23:59:59"), JAN_1_2024 - DAY),
        ("notes", "/docs/notes.txt", False, 1024, None, JAN_1_2024),
        ("report", "/docs/report_final.pdf", False, 10 * 1024 * 1024, epoch("2024-02-01T00:00:00"), JAN_1_2024),
        ("percent", "/docs/100%_done.txt", False, 0, epoch("2024-02-29T12:00:00"), JAN_1_2024),
        ("song", "/music/song.mp3", False, 4_000_000, epoch("2023-06-01T00:00:00"), JAN_1_2024 - 30 * DAY),
        ("music", "/music", True, None, None, JAN_1_2024),
        ("windows", "C:\\Users\\me\\photo.jpg", False, 2048, epoch("2024-03-09T09:00:00"), JAN_1_2024),
        ("unicode", "/data/Ünïcode.TXT", False, 10, epoch("2024-03-10T11:00:00"), JAN_1_2024),
        ("zip", "/archive/old.zip", False, 50_000_000, epoch("2022-01-01T00:00:00"), JAN_1_2024 - 400 * DAY),
    ]
    for name, path, is_directory, size, modified, created in items:
        ids[name] = store.add_item(path, is_directory, size, modified, created).id

    attachments = {
        "photos": ["topic:vacation"],
        "beach": ["topic:vacation", "year:2024"],
        "party": ["topic:vacation", "topic:family", "year:2024"],
        "jpeg": ["topic:family", "year:2023", "status:archived"],
        "notes": ["topic:work", "status:work"],
        "report": ["topic:work", "topic:project", "status:done", "year:2024"],
        "percent": ["topic:project", "status:archived"],
        "song": ["topic:family"],
        "windows": ["topic:work", "status:archived"],
        "zip": ["status:archived", "year:2023"],
    }
    for item_name, tag_keys in attachments.items():
        for key in tag_keys:
            store.attach_tag(ids[item_name], ids[key])

    return ids


@pytest.fixture
def store(tmp_path):
    """Empty SQLite store in a temporary directory."""
    return SQLiteStore(tmp_path / "library.db")


@pytest.fixture
def library(store):
    """SQLite store populated by build_library(), with its id map."""
    return store, build_library(store)

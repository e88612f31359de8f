"""
tagfinder - query engine for tagged file libraries

Parses a small JQL-like filter language (`tag = "Work" AND size > 10MB`)
and evaluates it against a library of tracked files and their tags, either
through SQLite or in memory.
"""

__version__ = "0.1.0"
__author__ = "tagfinder Team"

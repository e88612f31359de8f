"""
Storage collaborators and result assembly for tagfinder.

This module contains the catalog/store interfaces, the SQLite item store,
the in-memory snapshot used for reference evaluation and the result
assembler.
"""

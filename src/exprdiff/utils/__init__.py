"""Utility modules shared by the pipelines."""

from exprdiff.utils.fileio import atomic_download, atomic_write_json

__all__ = [
    'atomic_download',
    'atomic_write_json',
]

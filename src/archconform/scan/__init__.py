"""Source tree scanning for archconform."""

from archconform.scan.files import find_source_files

__all__ = ["find_source_files"]

"""Readers and writers that turn translation files into flat key→text maps."""

from lingopipe.formats.json_file import JSONFileTransformer

__all__ = ["JSONFileTransformer"]

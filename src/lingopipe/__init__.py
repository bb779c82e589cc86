"""lingopipe: stage-based translation pipeline for key/value text collections."""

__version__ = "0.4.0"

"""Allow running as python -m lingopipe."""

from lingopipe.cli import app

app()

"""Allow ``python -m det_merge``."""

from det_merge.cli import app

app()

"""Allow ``python -m pdfshrink``."""

from .main import cli

cli(prog_name="pdfshrink")

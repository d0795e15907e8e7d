"""Allow `python -m dbpulse`."""

from dbpulse.cli.main import app

app()

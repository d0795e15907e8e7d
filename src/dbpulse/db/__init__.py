"""
Database access for dbpulse.

- driver: Connector/Handle protocols, the psycopg implementation and a
  scripted mock
- probe: the probe primitive returning ProbeSuccess or ProbeFailure
"""

from dbpulse.db.driver import (
    Connector,
    Handle,
    MockConnector,
    PsycopgConnector,
    get_connector,
)
from dbpulse.db.probe import (
    ProbeFailure,
    ProbeOutcome,
    ProbeSuccess,
    execute_probe,
    probe_once,
)

__all__ = [
    "Connector",
    "Handle",
    "MockConnector",
    "PsycopgConnector",
    "get_connector",
    "ProbeFailure",
    "ProbeOutcome",
    "ProbeSuccess",
    "execute_probe",
    "probe_once",
]

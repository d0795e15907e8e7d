"""dbpulse - Continuous database reachability probe for PostgreSQL."""

__version__ = "0.1.0"
__license__ = "MIT"

# Exception hierarchy (import first so other modules can use it)
from dbpulse.exceptions import (
    DBPulseError,
    ConfigurationError,
    ProbeError,
)

from dbpulse.config import (
    LogLevel,
    ProbeConfig,
    get_config,
)
from dbpulse.daemon import ProbeDaemon
from dbpulse.db.probe import (
    ProbeFailure,
    ProbeOutcome,
    ProbeSuccess,
)
from dbpulse.prober import CachedProber, RoundProber
from dbpulse.status import (
    StatusRecord,
    StatusSnapshot,
    Transition,
)

__all__ = [
    # Exception hierarchy
    "DBPulseError",
    "ConfigurationError",
    "ProbeError",
    # Configuration
    "LogLevel",
    "ProbeConfig",
    "get_config",
    # Probing
    "CachedProber",
    "ProbeDaemon",
    "RoundProber",
    # Results & status
    "ProbeFailure",
    "ProbeOutcome",
    "ProbeSuccess",
    "StatusRecord",
    "StatusSnapshot",
    "Transition",
    # Metadata
    "__version__",
    "__license__",
]

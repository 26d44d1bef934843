"""
Race mutually-exclusive transactions across endpoints and report which one
reaches finality first.
"""

__version__ = "0.1.0"

from .builder import LocalSigner, build_conflict_set, transfer_schedule  # noqa: E402
from .engine import RaceSettings, run_race  # noqa: E402
from .models import Endpoint, RaceResult, Status  # noqa: E402

__all__ = [
    "Endpoint",
    "LocalSigner",
    "RaceResult",
    "RaceSettings",
    "Status",
    "build_conflict_set",
    "run_race",
    "transfer_schedule",
]

"""Risk factor analyzers.

build_analyzers() returns one instance per factor in aggregation order.
"""

from ..blocklist import ExternalFraudDatabase
from ..geo import GeoResolver
from ..history import TransactionHistory
from .amount import AmountDeviationAnalyzer
from .base import RiskAnalyzer
from .behavior import BehaviorConsistencyAnalyzer
from .device import DeviceFingerprintAnalyzer
from .external import ExternalDatabaseAnalyzer
from .frequency import FrequencyAnalyzer
from .time_pattern import TimePatternAnalyzer, local_hour, to_local_hour


def build_analyzers(
    history: TransactionHistory,
    geo: GeoResolver,
    fraud_database: ExternalFraudDatabase,
) -> list[RiskAnalyzer]:
    return [
        AmountDeviationAnalyzer(),
        TimePatternAnalyzer(),
        FrequencyAnalyzer(history),
        DeviceFingerprintAnalyzer(history),
        BehaviorConsistencyAnalyzer(geo),
        ExternalDatabaseAnalyzer(fraud_database),
    ]


__all__ = [
    "AmountDeviationAnalyzer",
    "BehaviorConsistencyAnalyzer",
    "DeviceFingerprintAnalyzer",
    "ExternalDatabaseAnalyzer",
    "FrequencyAnalyzer",
    "RiskAnalyzer",
    "TimePatternAnalyzer",
    "build_analyzers",
    "local_hour",
    "to_local_hour",
]

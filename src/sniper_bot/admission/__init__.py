"""
Admission layer: decides whether a new token may be bought.

Public API:
    AdmissionRuleEngine, AdmissionResult - Verdicts from report + history
    AdmissionSettings - Thresholds and toggles
    RugCheckClient - Token report source
    TokenReport - Parsed report model
"""
from .engine import AdmissionResult, AdmissionRuleEngine
from .models import TokenReport
from .report_client import RugCheckClient
from .rules import AdmissionCondition, AdmissionSettings, build_conditions, ends_with_pump

__all__ = [
    "AdmissionCondition",
    "AdmissionResult",
    "AdmissionRuleEngine",
    "AdmissionSettings",
    "RugCheckClient",
    "TokenReport",
    "build_conditions",
    "ends_with_pump",
]

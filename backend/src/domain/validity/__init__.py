"""Validity domain module - document freshness windows and expiration status."""

from .rules import DEFAULT_VALIDITY_WINDOWS, ValidityRuleTable
from .tracker import EXPIRING_SOON_DAYS, ValidityTracker

__all__ = [
    "DEFAULT_VALIDITY_WINDOWS",
    "ValidityRuleTable",
    "EXPIRING_SOON_DAYS",
    "ValidityTracker",
]

"""ValidityRuleTable - document category -> validity window in days.

The validity window says how long a document stays fresh for underwriting
use. It is independent of retention: a stale pay stub may still have years
of mandatory retention ahead of it.
"""

from types import MappingProxyType
from typing import Mapping, Optional

from domain.lifecycle.errors import ConfigError
from domain.lifecycle.models import DocumentCategory


DEFAULT_VALIDITY_WINDOWS: Mapping[DocumentCategory, int] = MappingProxyType({
    DocumentCategory.CREDIT_REPORT: 120,    # 4 months
    DocumentCategory.PAY_STUB: 30,          # 1 month
    DocumentCategory.BANK_STATEMENTS: 60,   # 2 months
    DocumentCategory.TAX_RETURNS: 365,      # 1 year
    DocumentCategory.APPRAISAL: 180,        # 6 months
    DocumentCategory.INSURANCE: 365,        # 1 year
    DocumentCategory.TITLE: 90,             # 3 months
    DocumentCategory.OTHER: 90,
})


class ValidityRuleTable:
    """Immutable lookup of validity windows.

    Categories without a rule are non-expiring.
    """

    def __init__(self, windows: Optional[Mapping] = None):
        parsed = {}
        for category, days in (windows or {}).items():
            try:
                key = DocumentCategory.parse(category)
            except ValueError:
                raise ConfigError(f"Unknown document category in validity rules: {category!r}")
            if days is None or int(days) < 1:
                raise ConfigError(f"Validity window for {key.value} must be at least 1 day")
            parsed[key] = int(days)
        self._windows = MappingProxyType(parsed)

    @classmethod
    def defaults(cls) -> "ValidityRuleTable":
        return cls(DEFAULT_VALIDITY_WINDOWS)

    def window_for(self, category: DocumentCategory) -> Optional[int]:
        """Validity window in days, or None if the category never expires."""
        return self._windows.get(category)

    def as_dict(self) -> dict[str, int]:
        return {category.value: days for category, days in sorted(self._windows.items())}

    def __len__(self) -> int:
        return len(self._windows)

    def __contains__(self, category) -> bool:
        return category in self._windows

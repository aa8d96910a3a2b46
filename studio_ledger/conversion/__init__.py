"""Lead conversion package."""

from studio_ledger.conversion.pipeline import (
    Catalog,
    ConversionForm,
    ConversionResult,
    LeadConverter,
    Quote,
)

__all__ = [
    "Catalog",
    "ConversionForm",
    "ConversionResult",
    "LeadConverter",
    "Quote",
]

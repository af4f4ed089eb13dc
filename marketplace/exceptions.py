"""
Error Types

Failures the analytics core raises on purpose. Everything else (store I/O
errors in particular) propagates unchanged to the request boundary.
"""

from typing import Iterable, Optional


class MarketplaceError(Exception):
    """Base class for analytics errors"""


class InvalidReportRequest(MarketplaceError, ValueError):
    """Malformed date or unknown keyword in a report request"""

    def __init__(self, message: str, parameter: Optional[str] = None):
        super().__init__(message)
        self.parameter = parameter

    @classmethod
    def unknown_keyword(
        cls,
        parameter: str,
        value: object,
        allowed: Iterable[str],
    ) -> "InvalidReportRequest":
        """Build the error raised for a keyword outside its closed set"""
        choices = ", ".join(allowed)
        return cls(f"Unknown {parameter} '{value}'. Expected one of: {choices}", parameter=parameter)


class ProductNotFound(MarketplaceError, LookupError):
    """Product analytics requested for an identifier not in the catalog"""

    def __init__(self, product_id: str):
        super().__init__(f"Product not found: {product_id}")
        self.product_id = product_id

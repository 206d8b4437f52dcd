"""
Core types for storefront.

Re-exports from kungfu + shared aliases.
"""

from __future__ import annotations

from decimal import Decimal

# Re-export from kungfu
from kungfu import Result, Ok, Error

# ═══════════════════════════════════════════════════════════════════════════════
# Aliases
# ═══════════════════════════════════════════════════════════════════════════════

type Money = Decimal
"""Currency-agnostic amount. Never a float."""

type ProductId = int
"""Integer product identity assigned by the catalog store."""

PLACEHOLDER = "Único"
"""Label used for a blank color/size and for one-size products."""

# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = (
    # Re-exports from kungfu
    "Result",
    "Ok",
    "Error",
    # Aliases
    "Money",
    "ProductId",
    "PLACEHOLDER",
)

"""Billing module constants for usage-weighted cost allocation."""

# Per-metric weights of the composite usage score
USAGE_WEIGHTS = {
    "api_requests": 1,
    "pdf_generated": 50,
    "active_users": 10,
    "storage_gb": 5,
}

MONTH_PATTERN = r"^\d{4}-\d{2}$"

# Allocations are reported to the cent
AMOUNT_DECIMALS = 2

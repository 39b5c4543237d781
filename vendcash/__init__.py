"""VendCash collections: lifecycle and audit engine for vending cash pickups."""

__version__ = "0.1.0"

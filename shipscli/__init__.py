"""shipscli: credit-aware ShipsGo ocean shipment tracking."""

__version__ = "0.1.0"

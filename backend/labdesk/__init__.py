"""LabDesk: lab equipment booking and inventory stock ledger API."""

__version__ = "0.1.0"

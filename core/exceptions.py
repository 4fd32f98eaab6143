"""
exceptions.py
--------------
Error types raised by the storage layer and the companion actions.
"""


class StoreError(Exception):
    """Raised when the ledger store cannot read or write."""


class ConfirmationError(Exception):
    """
    Raised when confirming a single pattern fails.

    Other pending patterns are unaffected; the caller may retry.
    """

    def __init__(self, vendor_name: str, message: str):
        self.vendor_name = vendor_name
        super().__init__(f"Failed to confirm recurring pattern for '{vendor_name}': {message}")

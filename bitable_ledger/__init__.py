# bitable_ledger/__init__.py

"""
BITABLE LEDGER package initializer.

Keep this import-free: app_entry, the CLI and the tests import the
submodules they need, and importing the logger here would configure
logging as a side effect of any import.
"""

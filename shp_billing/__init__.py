"""SHP billing engine.

Time-entry billing and annual hour allowance accounting for the SHP
Management Platform.
"""

__version__ = "1.0.0"

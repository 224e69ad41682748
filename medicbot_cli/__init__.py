"""
medicbot-cli: Discord-authenticated client for the MedicBot audio catalog.
"""

__version__ = "0.1.0"

"""
Shared helpers: FMG number formatting, logging setup and file loading.
"""

"""
HTTP interface for map imports.
"""

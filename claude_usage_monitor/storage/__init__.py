"""
Usage log records and loading.
"""

"""
Shared utilities: configuration, logging, failure tracking and constants.
"""

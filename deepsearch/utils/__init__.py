"""
deepsearch/utils

Logging, exceptions, event channels and CLI helpers.
"""

"""
deepsearch/scripts

Command line entry points.
"""

"""
deepsearch/data_models

Data models for templates, threads, events and status.
"""

"""
deepsearch

Deep search over Nextdoor discussion threads: request template capture,
replay and comment extraction, and a conversational agent over the results.
"""

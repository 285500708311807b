"""
Batch Module
-----------
Single-worker batch queue that drains studio ids against the rate-limited provider.
"""

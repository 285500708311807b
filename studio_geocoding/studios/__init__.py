"""
Studios Module
------------
Applies resolved coordinates to studio records and finds studios still lacking them.
"""

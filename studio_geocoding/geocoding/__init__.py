"""
Geocoding Module
--------------
Handles forward geocoding of postal addresses into coordinates.
Uses the Google Geocoding API behind a two-tier (in-process + database) cache.
"""

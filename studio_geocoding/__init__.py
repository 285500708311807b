"""
Studio Geocoding
----------------
Resolves studio postal addresses into coordinates through a two-tier cache
and drains backlogs of unresolved studios against the Google Geocoding API.
"""

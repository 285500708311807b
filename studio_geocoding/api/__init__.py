"""
API Module
---------
Provides the administrative HTTP surface for geocoding using FastAPI.
Features include:
- Resolving single addresses and small address lists
- Geocoding a single studio immediately or through the queue
- Triggering bulk scans and inspecting or clearing the pending queue
- Cache statistics and maintenance
"""

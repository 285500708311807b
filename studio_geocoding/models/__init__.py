"""
Data Models Module
----------------
Contains Pydantic models for geocoding results, batch summaries and status payloads.
"""

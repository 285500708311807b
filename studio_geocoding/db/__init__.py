"""
Database Module
-------------
Handles database connections, ORM models, and session management.
Uses SQLAlchemy and defines the studio table and the persistent geocode cache table.
"""

"""Shared utilities package for the field operations application.

This package contains shared code used by both the backend Flask API and the
field client. It includes:

- Database models (models.py) - SQLAlchemy models used by the backend and the client's local store
- Enums (enums.py) - Shared enumeration definitions for status values and form types
- Validation utilities (validation.py, schemas.py) - Input validation and sanitization
- Utility functions (utils.py) - Image normalization and data-URI helpers
"""

"""
camp_portal.db

Persistence package (SQLAlchemy async) for the credential store.

Responsibilities:
- Provide ORM models, engine/session setup, and repositories.
"""

# Package marker.

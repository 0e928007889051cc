"""
camp_portal.db.repositories

Repository package.

Responsibilities:
- Group data-access repositories for the credential store.
"""

# Package marker; repositories are imported directly from submodules.

"""
camp_portal.services

Service layer.

Responsibilities:
- Own transactions for account operations and pair role changes with revocation.
"""

# Package marker.

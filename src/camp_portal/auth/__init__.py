"""
camp_portal.auth

Authentication/authorization package.

Responsibilities:
- Secret hashing, local JWT issuing/validation, external identity bridge.
- Role policy engine (allow-list and minimum-role checks).
- FastAPI auth dependencies (Principal + RBAC).
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Submodules are imported directly; nothing is re-exported here to keep the
# db -> auth.models import edge free of cycles.

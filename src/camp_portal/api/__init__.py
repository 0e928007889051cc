"""
camp_portal.api

API package for the camp portal identity service.

Responsibilities:
- FastAPI app factory and router modules.
- API-layer dependency wiring, exception handlers and request/response models.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The API layer stays thin: request validation + auth dependencies + delegation to services.

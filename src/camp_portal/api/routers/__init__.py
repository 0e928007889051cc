"""
camp_portal.api.routers

Router modules, one per route family (local auth, external auth, admin, dev, health).
"""

# Package marker.

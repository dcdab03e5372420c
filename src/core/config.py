"""
Runtime configuration.

Values can be overridden through environment variables, everything else falls back to the defaults below.
"""

import os

DATABASE_URL = os.environ.get("MORRIS_DATABASE_URL", "sqlite:///morris.db")

# A stored session older than this is not offered for restoring anymore (5 minutes)
SESSION_EXPIRY_MS = int(os.environ.get("MORRIS_SESSION_EXPIRY_MS", 5 * 60 * 1000))

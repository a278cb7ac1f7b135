"""
Core constants — **Single Source of Truth** for project-wide magic numbers.

Any business rule that references a numeric constant should import it
from here instead of hardcoding.  This avoids drift between apps that
use the same value.
"""

# ── Geography ───────────────────────────────────────────────────────
# Mean Earth radius used by the haversine distance in nearby searches.
EARTH_RADIUS_KM: float = 6371.0

NEARBY_DEFAULT_RADIUS_KM: float = 5.0
NEARBY_MAX_RADIUS_KM: float = 50.0

# ── Complaints ──────────────────────────────────────────────────────
MAX_TAGS_PER_COMPLAINT: int = 10
MAX_TAG_LENGTH: int = 30

# Blob references only; the bytes live in external storage.
MAX_ATTACHMENT_SIZE_BYTES: int = 10 * 1024 * 1024
MAX_ATTACHMENTS_PER_COMPLAINT: int = 5

# ── Ratings ─────────────────────────────────────────────────────────
MIN_RATING: int = 1
MAX_RATING: int = 5

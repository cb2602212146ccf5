"""
Timeline Constants

Default dimensions and interaction thresholds. User-tunable values live in
TimelineSettings; these are the fallbacks and hard limits.
"""

# =============================================================================
# Dimensions (pixels)
# =============================================================================

TRACK_HEIGHT = 40
TRACK_LABEL_WIDTH = 120
TRACKS_TOP = 24  # Ruler height above the first track
RESIZE_HANDLE_WIDTH = 6
MIN_RESIZE_HANDLE_WIDTH = 3
RESIZE_HANDLE_PERCENT = 0.15  # Share of a narrow placement used by each handle
MIN_POINT_WIDTH_PX = 8  # Point placements are never drawn narrower than this

DEFAULT_VIEW_WIDTH = 1000
DEFAULT_VIEW_HEIGHT = 400

# =============================================================================
# Zoom
# =============================================================================

DEFAULT_ZOOM = 1.0
MIN_ZOOM = 0.1
MAX_ZOOM = 10.0
ZOOM_STEP = 1.2

# =============================================================================
# Interaction
# =============================================================================

DRAG_THRESHOLD = 3  # Manhattan distance before a press becomes a drag
MIN_RANGE_LENGTH = 0.01  # Shortest range a resize can produce

# =============================================================================
# Snap
# =============================================================================

DEFAULT_SNAP_GRID = 1.0
SNAP_THRESHOLD = 0.5  # Timeline units at zoom 1; divided by zoom

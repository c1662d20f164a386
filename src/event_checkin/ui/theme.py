from __future__ import annotations

# Core surfaces
VS_BG = "#1E1E1E"
VS_SURFACE = "#252526"
VS_SURFACE_ALT = "#2D2D30"
VS_CARD = "#2F2F33"

# Borders and outlines
VS_BORDER = "#3C3C3C"

# Accent colors
VS_ACCENT = "#0E639C"
VS_ACCENT_HOVER = "#1177BB"

# Text colors
VS_TEXT = "#F3F3F3"
VS_TEXT_MUTED = "#9DA5B4"

# Check-in result colors
CHECKIN_SUCCESS = "#16A34A"
CHECKIN_ERROR = "#DC2626"
CHECKIN_ERROR_HOVER = "#B91C1C"

"""SOS and alert policy constants."""

from __future__ import annotations

# Incident type reserved for SOS signals
SOS_INCIDENT_TYPE = "SOS"

# Description stored on every SOS incident
SOS_DESCRIPTION = "Emergency SOS triggered"

# Seconds after a successful SOS during which further triggers are ignored
COOLDOWN_SECONDS = 4.0

# Seconds a notification stays visible
NOTIFICATION_TTL_SECONDS = 4.0

# Size of the "recent alerts" view
RECENT_ALERTS_LIMIT = 20

STATUS_ACTIVE = "active"
STATUS_RESOLVED = "resolved"

MSG_SOS_PRECONDITION = "Login and location required"
MSG_SOS_INVALID_LOCATION = "Current location is invalid, SOS not sent"
MSG_SOS_SENT = "SOS sent. Help is on the way."
MSG_SOS_RATE_LIMITED = "Too many requests. Try again in {seconds} seconds."
MSG_SOS_FAILED = "SOS failed: {error}"
MSG_REFRESH_FAILED = "Could not refresh incidents: {error}"

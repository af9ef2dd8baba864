"""Incident status rules.

Pure functions and tables shared by the clustering engine, the incident
service and the video analysis prompt.
"""

from datetime import timedelta

from schemas.incident import IncidentStatus, Severity

# Maximum age, in hours, at which a signal of each event type still counts as
# evidence of an ongoing event. Also the silence period for high-severity
# incidents before a resolution check.
MAX_SIGNAL_AGE_HOURS: dict[str, int] = {
    "earthquake": 12,
    "accident": 6,
    "power_outage": 12,
    "fire": 24,
    "flood": 48,
    "landslide": 48,
    "whirlwind": 6,
    "tornado": 6,
    "tsunami": 24,
    "volcano": 72,
    "other": 24,
}

# Silence periods for low and medium severity. High severity uses the event
# type's MAX_SIGNAL_AGE_HOURS.
RESOLUTION_SILENCE_HOURS: dict[str, int] = {
    "low": 1,
    "medium": 4,
}


def determine_status(signal_count: int, confidence: float, severity: Severity) -> IncidentStatus:
    """Pick the escalation level for an incident.

    confirm: confidence >= 0.8, high severity and at least 3 signals.
    alert:   confidence >= 0.6 and at least 2 signals.
    monitor: everything else.
    """
    if confidence >= 0.8 and severity == "high" and signal_count >= 3:
        return IncidentStatus.CONFIRM
    if confidence >= 0.6 and signal_count >= 2:
        return IncidentStatus.ALERT
    return IncidentStatus.MONITOR


def max_signal_age(event_type: str) -> timedelta:
    hours = MAX_SIGNAL_AGE_HOURS.get(event_type.strip().lower(), MAX_SIGNAL_AGE_HOURS["other"])
    return timedelta(hours=hours)


def silence_period(severity: str, event_type: str) -> timedelta:
    """How long an incident must go without new signals before a resolution check."""
    if severity in RESOLUTION_SILENCE_HOURS:
        return timedelta(hours=RESOLUTION_SILENCE_HOURS[severity])
    return max_signal_age(event_type)

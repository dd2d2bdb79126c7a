import pandas as pd

# --- Colors ---
COLOR_HIGH = '#ff4757'
COLOR_MEDIUM = '#ffa502'
COLOR_LOW = '#2ed573'
COLOR_NEUTRAL = '#57606f'

RISK_COLORS = {
    'high': COLOR_HIGH,
    'medium': COLOR_MEDIUM,
    'low': COLOR_LOW,
}

STATUS_COLORS = {
    'inquiry_submitted': '#70a1ff',
    'documents_pending': '#ffa502',
    'application_completed': '#2ed573',
    'dropout_risk': '#ff4757',
    'counselor_required': '#ff3838',
    'engaged': '#5352ed',
}

STATUSES = list(STATUS_COLORS)

STATUS_OPTIONS = [
    {'label': 'Inquiry Submitted', 'value': 'inquiry_submitted'},
    {'label': 'Documents Pending', 'value': 'documents_pending'},
    {'label': 'Application Completed', 'value': 'application_completed'},
    {'label': 'Dropout Risk', 'value': 'dropout_risk'},
    {'label': 'Counselor Required', 'value': 'counselor_required'},
    {'label': 'Engaged', 'value': 'engaged'},
]

INVALID_DATE = 'Invalid Date'


def get_risk_color(risk_level):
    """Badge color for a risk level; unknown or missing levels get the neutral gray."""
    return RISK_COLORS.get(risk_level, COLOR_NEUTRAL)


def get_status_color(status):
    return STATUS_COLORS.get(status, COLOR_NEUTRAL)


def status_label(status):
    return status.replace('_', ' ')


def format_date(value):
    """
    Formats a timestamp the way the admissions team reads it, e.g.
    'Oct 19, 2026, 03:45 PM'. Accepts ISO strings, datetimes and epoch
    milliseconds. Anything unparseable renders as 'Invalid Date'.
    """
    if value is None or value == '':
        return INVALID_DATE
    try:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            ts = pd.to_datetime(value, unit='ms')
        else:
            ts = pd.to_datetime(value)
    except (ValueError, TypeError, OverflowError):
        return INVALID_DATE
    if pd.isna(ts):
        return INVALID_DATE
    return f"{ts:%b} {ts.day}, {ts:%Y}, {ts:%I:%M %p}"

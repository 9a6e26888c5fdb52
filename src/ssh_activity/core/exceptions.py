"""
Exception hierarchy for the activity monitor.
"""


class ActivityMonitorError(Exception):
    """Base class for activity monitor errors."""
    pass


class AuditToolMissingError(ActivityMonitorError):
    """Raised at startup when the audit query tool is not installed."""
    pass


class ConfigError(ActivityMonitorError):
    """Raised when a configuration file cannot be loaded or validated."""
    pass

"""StatusPulse - service-health feed mirror and alerting core."""

__version__ = "0.1.0"

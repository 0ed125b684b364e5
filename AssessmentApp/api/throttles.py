"""API throttling classes."""

from rest_framework.throttling import AnonRateThrottle

class LoginRateThrottle(AnonRateThrottle):
    """Throttle limiting login attempts per client address."""
    scope = "login"
    rate = "20/minute"

"""coachctl: doctrine-grounded coaching agent core."""

__version__ = "0.1.0"

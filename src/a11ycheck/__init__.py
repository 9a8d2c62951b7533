"""a11ycheck - accessibility issue checker for course content."""

__version__ = "0.4.0"

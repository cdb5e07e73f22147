"""TimeFlow - personal time tracking engine"""

__version__ = "1.0.0"

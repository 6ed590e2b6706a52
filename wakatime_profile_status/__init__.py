"""WakaTime coding activity as a profile status.

This package provides a daemon that periodically reads today's coding activity
from WakaTime and republishes it as a GitHub profile status.
"""

__version__ = "0.1.0"

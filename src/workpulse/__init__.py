"""WorkPulse - personal productivity tracker"""

__version__ = "0.1.0"

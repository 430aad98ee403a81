"""xyzulu - multi-provider AI coding assistant"""

__version__ = "0.1.0"

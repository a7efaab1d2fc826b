"""Team calendar booking service for an electronic lab notebook"""

__version__ = "1.0.0"

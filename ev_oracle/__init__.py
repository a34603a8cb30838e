"""EV Oracle: battery specifications for electric vehicles."""

__version__ = "0.1.0"

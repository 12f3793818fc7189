"""Content management and event ticketing for an artist website, as Django apps."""

__version__ = "0.1.0"

"""Local gateway that forwards chat completions to the Spark API."""

__version__ = "1.0.0"

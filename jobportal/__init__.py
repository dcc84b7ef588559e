"""Client-side session and authentication lifecycle for the job portal."""

__version__ = "1.0.0"

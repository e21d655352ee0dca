"""skilled-agent — a skill-using assistant for your terminal."""

__version__ = "0.1.0"

"""td - local task tracking for AI-assisted development sessions."""

__version__ = "0.4.0"

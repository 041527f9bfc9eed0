"""moodlist: prompt → tags → tracks → playlist."""

__version__ = "1.0.0"

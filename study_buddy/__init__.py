"""StudyBuddy: a Socratic mathematics tutoring backend."""

__version__ = "0.1.0"

"""Configuration loading for StudyBuddy."""

"""
Core modules for StudyBuddy.

This package contains topic classification, session resolution, token
metering, context compaction, prompt building and chat orchestration.
"""

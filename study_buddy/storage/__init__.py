"""In-memory conversation and transcript storage."""

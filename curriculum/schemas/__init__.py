"""Pydantic models for research, generated content and the run state."""

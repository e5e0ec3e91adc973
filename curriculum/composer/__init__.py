"""Prompt templates for curriculum generation tasks."""

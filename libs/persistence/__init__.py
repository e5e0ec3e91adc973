"""Storage for finished curricula."""

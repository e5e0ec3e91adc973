"""Provider access: the structured generation client and the batch dispatcher."""

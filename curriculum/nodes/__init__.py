"""Stage handlers. Each takes the current GenerationState and a NodeContext and returns a partial update."""

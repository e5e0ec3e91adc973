"""Stage graph, refinement controller and the curriculum orchestrator."""

"""Interview curriculum generation: research, per-round content and a quality loop run as a LangGraph stage graph."""

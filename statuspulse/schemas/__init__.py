"""Feed and wire schemas."""

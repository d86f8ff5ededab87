"""Background poll loops and the interval registry."""

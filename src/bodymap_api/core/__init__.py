"""Core utilities: exceptions, logging, security."""

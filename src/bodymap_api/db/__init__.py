"""Database session and initialization."""

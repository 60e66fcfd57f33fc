"""Storage backends for td."""

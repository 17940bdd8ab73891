"""Input and result data models."""

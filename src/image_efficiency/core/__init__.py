"""Core analyzer configuration and pipeline."""

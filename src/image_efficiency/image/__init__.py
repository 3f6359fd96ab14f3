"""Image manifest, layer assembly and analysis results."""

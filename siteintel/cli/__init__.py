"""siteintel command-line interface."""

"""docent command-line interface."""

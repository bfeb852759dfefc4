"""assistant-guard command line interface."""

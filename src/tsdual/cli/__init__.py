"""tsdual command line interface."""

"""cnsh command line interface."""

"""TipVault command line interface."""

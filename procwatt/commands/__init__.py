"""Command implementations behind the procwatt CLI."""

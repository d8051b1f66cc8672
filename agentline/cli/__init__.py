"""Command-line entry points — one subcommand per server."""

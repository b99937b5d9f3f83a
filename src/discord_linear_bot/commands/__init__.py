"""dlbot subcommands."""

"""issuer subcommands, one module per command."""

"""Core paymaster components: configuration, logging, errors and contracts."""

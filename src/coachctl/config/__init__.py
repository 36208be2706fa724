"""Configuration: TOML + env + CLI settings, discovery, and logging setup."""

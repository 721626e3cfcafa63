"""First-boot agent that discovers its cloud platform and configures the host."""

__version__ = "0.1.0"

"""Resource models, component status management and prechecks for Rainbond clusters."""

__version__ = "2.0.1.dev0"
"""rel - build and publish crate releases from CI tag pushes."""

__version__ = "0.3.0"

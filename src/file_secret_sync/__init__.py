"""Mirror a directory into a Kubernetes secret and keep it in sync."""

__version__ = "1.0.0"

"""Build pipeline tooling: promote deployment descriptors into a GitOps repository."""

__version__ = "0.4.0"

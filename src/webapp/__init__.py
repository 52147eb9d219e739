"""Static web app with its Helm / Argo CD deployment tooling."""

__version__ = "0.1.0"

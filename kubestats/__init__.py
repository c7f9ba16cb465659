"""kubestats: Kubernetes cluster metrics exporter."""

__version__ = "0.2.0"

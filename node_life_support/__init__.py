"""Keeps selected Kubernetes nodes Ready when their kubelet cannot."""

__version__ = "1.0.0"

"""
Podman provisioner — build and install a current container engine stack from source.
"""

__version__ = "0.1.0"

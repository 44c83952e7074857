"""
Provisioning service — build and configure a container stack from source.

Layers (each only imports the ones above it):
    detection   read-only host probes (os-release, disk, network, versions)
    execution   host writes (config files, shell fragments, sudo keep-alive)
    preflight   environment checks, before anything is mutated
    stages      the pipeline's units of work and their fixed order
    pipeline    one end-to-end run

Import from the submodules directly; this package does not re-export,
because ``src.core.context`` imports from ``detection`` and an eager
import of ``pipeline`` here would be circular.
"""

"""
Detection — read-only host probes.

These functions READ system state but never WRITE.
"""

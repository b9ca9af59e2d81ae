"""
AutoCapCheck - fleet-wide heterogeneous-hardware capability check.

Discovers vCenter Server instances through SDDC Manager (or takes them
directly), runs the remote capability scan on each compatible instance
and reports a per-target outcome with a failure-class exit code.
"""

__version__ = "1.0.0"

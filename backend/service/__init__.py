"""
GitWatch Service Package.

Application wiring and command line entry point.
Requires Python 3.11+.
"""

from service.app import GitWatch

__all__ = ["GitWatch"]

"""
PolicyGate - multi-tenant policy-based access control.
"""

__version__ = "0.1.0"

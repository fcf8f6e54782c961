"""
TPA adjudication core.

Eligibility rule pipeline, benefit-policy coverage resolution and the
claim / pre-authorization state machines with their audit trail.
"""

__version__ = "1.0.0"

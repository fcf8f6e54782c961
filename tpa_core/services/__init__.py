"""
Services Layer for the Adjudication Core.

Eligibility, coverage resolution, lifecycle state machines, audit trail and
the workflows that combine them.
"""

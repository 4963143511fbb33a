"""
Duplicate Guard - phone-based duplicate order detection and remediation.

Groups recent orders by customer phone, picks the open order in each group
for review, then tags, annotates and optionally cancels it through an
injected order mutator. Canceled duplicates can be reopened manually.

This package does not import from the web layer, config.py or utils/, so it
can be driven from the API, the CLI scan script or tests alike.
"""

__version__ = "0.1.0"

"""
Visitor Intelligence Platform - visitor identification, company enrichment
and lead scoring pipeline.
"""

__version__ = "1.0.0"

"""
LienBridge Case Store & Recovery Analytics
==========================================

A Python core for provider-facing medical-lien recovery dashboards.  It owns
the in-memory case/event dataset for a single working session, keeps it in a
session-scoped cache, and derives portfolio KPIs, at-risk rankings, rule-based
case insights, and next-best operational actions from it.

DISCLAIMER: Insights and recommended actions are operational guidance for
provider staff.  They are not legal advice, and every outbound notice or
demand requires human review before it is sent.
"""

__version__ = "0.1.0"

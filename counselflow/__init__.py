"""
CounselFlow Contracts Service
=============================

Contract management API for a legal practice:
1. Listing, filtering and searching contracts a lawyer can see
2. Create / update / duplicate / delete
3. Headline statistics with period-over-period comparison
"""

__version__ = "1.0.0"

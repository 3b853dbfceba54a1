"""
Time Oracle Library
-------------------

Computes a single trusted timestamp from independently reported time
values using quorum-based clustering, and issues a bounded confidence
score and a verification hash for every result.
"""

__version__ = '0.1.0'

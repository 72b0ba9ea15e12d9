"""
Derived views over sampled profiles: filtered call trees, inverted stacks and
flame chart timings, memoized per thread.
"""

__version__ = "0.1.0"

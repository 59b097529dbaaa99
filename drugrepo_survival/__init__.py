"""
Survival models on drug gene signatures for breast cancer drug repurposing.
"""

__version__ = '0.1.0'

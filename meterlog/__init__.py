"""
meterlog - Source Package

Household utility meter log: cumulative electricity, gas and water
readings per house, turned into monthly and yearly usage.

DESIGN PRINCIPLES:
1. Readings are the only stored facts; summaries are always derived
2. Fail early, fail visibly
3. No silent corrections
4. Every change must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "meterlog Team"

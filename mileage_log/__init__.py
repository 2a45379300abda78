"""
Mileage Log: trip record query and exchange engine.
"""

__version__ = "1.0.0"

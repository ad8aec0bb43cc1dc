"""
Curricular analytics for degree plans: requisite resolution and graph metrics.
"""

__version__ = "0.1.0"

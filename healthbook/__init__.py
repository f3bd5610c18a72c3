"""
Healthbook

FastAPI backend for a two-sided healthcare appointment application:
patients register and review their appointments, healthcare professionals
register with a specialty and availability.
"""

__version__ = "1.0.0"

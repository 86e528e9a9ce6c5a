"""MedVision API: telemedicine scheduling for admins, doctors and patients."""

__version__ = "1.0.0"

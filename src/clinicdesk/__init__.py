"""
ClinicDesk - Clinic Intake Reconciliation Engine

Entity resolution, derived fields and submit gating for clinic intake
records (pathology billing, infertility case management).
"""

__version__ = "0.1.0"

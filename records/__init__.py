"""Records application for the health record backend.

This package contains models, serializers, services and views for patients
and their medical records, vaccinations, appointments and files, together
with the reminder aggregation used by dashboards and the daily job.
"""

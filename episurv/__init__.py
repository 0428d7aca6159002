"""
EpiSurv package
===============

Aggregation and reporting engine for monthly epidemiological surveillance
counts (disease x month x location x sex x age interval).

- The CLI entry point is in `episurv/cli.py`.
- The pipeline (period -> aggregate -> project -> totals) is in `episurv/engine.py`.
- Dataset loading is in `episurv/loader.py`; the REST backend in `episurv/client.py`.
"""

__version__ = '0.1.0'

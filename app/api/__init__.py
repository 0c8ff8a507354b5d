"""
API Blueprints Package

Each module defines a Flask Blueprint registered in app/__init__.py.

- recurring_jobs.py : Job series CRUD, instance generation, status changes
                      and conversion of instances into jobs
"""

__all__ = []

"""University agenda backend.

This package exposes the models, repositories, services and routers of
the contact / group-membership directory API. Individual modules contain
the concrete implementations and documentation; `agenda.main.create_app`
assembles them into a FastAPI application.
"""

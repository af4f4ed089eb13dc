"""
Request Dependencies
"""

from fastapi import Request

from marketplace.data.stores import DataStore
from marketplace.reporting.assembler import ReportAssembler


def get_store(request: Request) -> DataStore:
    """Store opened by the application lifespan."""
    return request.app.state.store


def get_assembler(request: Request) -> ReportAssembler:
    """Report assembler bound to the application store."""
    return request.app.state.assembler

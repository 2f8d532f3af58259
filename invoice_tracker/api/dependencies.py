"""
FastAPI dependencies
"""
from fastapi import Request

from invoice_tracker.services import Services


def get_services(request: Request) -> Services:
    """Services bound to the storage backend this app was created with"""
    return request.app.state.services

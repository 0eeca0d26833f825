from fastapi import Header, Request

from npscore.services.core import NpsCore


def get_core(request: Request) -> NpsCore:
    return request.app.state.core


def get_organization_id(x_organization_id: str = Header(..., min_length=1)) -> str:
    """Organization scope for every non-public route. Authentication is the host's concern."""
    return x_organization_id

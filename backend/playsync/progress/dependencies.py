from typing import Annotated

from fastapi import Depends, Query
from fastapi.requests import HTTPConnection

from .service import ProgressCoordinator
from .transport import LocalTransport


def get_coordinator(connection: HTTPConnection) -> ProgressCoordinator:
    """Coordinator owned by the application lifespan."""
    return connection.app.state.progress_coordinator


def get_transport(connection: HTTPConnection) -> LocalTransport:
    return connection.app.state.progress_transport


Coordinator = Annotated[ProgressCoordinator, Depends(get_coordinator)]
TransportDep = Annotated[LocalTransport, Depends(get_transport)]

# Scene lookup parameters
PositionParam = Annotated[float | None, Query(ge=0, description="Only return scenes starting after this position")]
LimitParam = Annotated[int, Query(ge=1, le=50, description="Maximum number of upcoming scenes")]

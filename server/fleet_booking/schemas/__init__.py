"""Pydantic schemas for request/response validation."""

from .actor import *  # noqa: F403
from .booking import *  # noqa: F403
from .common import *  # noqa: F403
from .driver import *  # noqa: F403
from .health import *  # noqa: F403
from .route import *  # noqa: F403
from .vehicle import *  # noqa: F403

# API Routes Module
from voxwarp.api.routes import (
    usage,
    metering,
    subscriptions,
    webhooks,
)

__all__ = [
    "usage",
    "metering",
    "subscriptions",
    "webhooks",
]

# Conditional edges
from .route_after_probe import route_after_probe

__all__ = [
    "route_after_probe",
]

#Marks routing as a package.
#Re-exports clean public APIs (OSRMClient, RouteService, the ETA rules)
#so other modules import from routing without knowing internal file names.
#No business logic.

from .osrm_client import OSRMClient, OSRMError
from .route_service import RouteService, RoutingCapability
from .eta_service import (
    EtaEstimate,
    adjust_eta_on_dispatch,
    correct_minutes,
    estimate_delivery_eta,
    estimate_from_raw,
    sanitize_minutes,
)

__all__ = [
           "OSRMClient",
           "OSRMError",
             "RouteService",
             "RoutingCapability",
             "EtaEstimate",
             "adjust_eta_on_dispatch",
             "correct_minutes",
             "estimate_delivery_eta",
             "estimate_from_raw",
             "sanitize_minutes",
             ]

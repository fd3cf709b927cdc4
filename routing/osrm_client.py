#Purpose: The OSRM “adapter/client”.
#Sole responsibility: talk to OSRM via HTTP and return normalized outputs.
#Encapsulates OSRM-specific details:
#coordinate formatting (lon,lat)
#URL construction (/route)
#timeouts and error handling
#parsing response JSON into your internal shape
#It should not contain ETA rules or order logic.


from dotenv import load_dotenv
import os
from typing import List, Tuple, Dict, Optional
import requests

# Read OSRM base URL from environment
# Example in .env:
# BASE_URL=http://router.project-osrm.org
load_dotenv()
BASE_URL = os.getenv("BASE_URL")

# Internal coordinate type: (lat, lon)
LatLon = Tuple[float, float]

class OSRMError(Exception):
    """Custom exception for OSRM client errors."""
    pass

class OSRMClient:
    """
    OSRM Adapter / Client

    Sole responsibility:
    - Talk to OSRM via HTTP
    - Convert internal (lat, lon) → OSRM (lon,lat)
    - Return normalized outputs

    """
    def __init__(self, profile: str = "driving", timeout: float = 10, base_url: Optional[str] = None,
                 session: Optional[requests.Session] = None):
        self.base_url = (base_url or BASE_URL or "").rstrip("/")
        self.timeout = timeout #the time to wait for a response from OSRM before giving up
        self.profile = profile #the mode of transportation (driving, walking, cycling)
        self.session = session or requests.Session()

        if not self.base_url:
            raise ValueError("OSRM base URL not set. Please set it in the .env file.")

    def format_coordinates(self, coords: List[LatLon]) -> str:
        """Convert list of (lat, lon) to OSRM format 'lon,lat;lon,lat;...'"""
        return ';'.join([f"{lon},{lat}" for lat, lon in coords])

    def compute_route(self, coordinates: List[LatLon]) -> Dict[str, float]:
        """
        calls the OSRM /route endpoint with the given coordinates and
        returns a dict with distance and duration

        Returns:
            {
                "distance": float, # in meters
                "duration": float, # in seconds
            }
        """
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required to compute a route.")

        url = f"{self.base_url}/route/v1/{self.profile}/{self.format_coordinates(coordinates)}"

        response = self.session.get(
            url,
            params={
                "overview": "false", # we don't need the geometry of the route
            },
            timeout=self.timeout,
        )

        try:
            data = response.json()
        except ValueError as exc:
            raise OSRMError(f"OSRM returned a non-JSON body (HTTP {response.status_code})") from exc

        #validating OSRM response
        if not response.ok or data.get("code") != "Ok":
            raise OSRMError(f"OSRM error: {data.get('message', 'Unknown error')} (HTTP {response.status_code})")

        routes = data.get("routes") or []
        if not routes:
            raise OSRMError("OSRM returned no route.")
        route = routes[0] #take the first route (OSRM may return multiple routes)

        #Normalize output to internal format
        return {
            "distance": route["distance"],
            "duration": route["duration"],
        }

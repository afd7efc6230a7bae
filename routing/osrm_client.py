#Purpose: The OSRM "adapter/client".
#Sole responsibility: talk to OSRM via HTTP and return normalized outputs.
#Encapsulates OSRM-specific details:
#coordinate formatting (lon,lat)
#URL construction (/table)
#timeouts and transport error handling
#parsing response JSON into our internal shape
#It should not contain dispatch rules or scoring.


from dotenv import load_dotenv
import os
from typing import List, Dict, Optional
import requests

from .geo import LatLon

# Read OSRM base URL from environment
# Example in .env:
# OSRM_BASE_URL=http://router.project-osrm.org
load_dotenv()

class OSRMError(Exception):
    """Raised when OSRM is unreachable or answers with a non-Ok code."""
    pass

class OSRMClient:
    """
    OSRM Adapter / Client

    Sole responsibility:
    - Talk to OSRM via HTTP
    - Convert internal (lat, lon) → OSRM (lon,lat)
    - Return normalized outputs (metres / seconds)

    """
    def __init__(self, base_url: Optional[str] = None, profile: str = "driving", timeout: int = 5, session=None):
        self.base_url = base_url or os.getenv("OSRM_BASE_URL")
        self.timeout = timeout #seconds to wait for OSRM before giving up
        self.profile = profile #driving, walking, cycling
        self.session = session or requests.Session()

        if not self.base_url:
            raise ValueError("OSRM base URL not set. Please set OSRM_BASE_URL in the .env file.")

        self.base_url = self.base_url.rstrip("/")

    #----------------
    # Internal helpers
    #----------------
    def format_coordinates(self, coords: List[LatLon]) -> str:
        """Convert list of (lat, lon) to OSRM format 'lon,lat;lon,lat;...'"""
        return ';'.join([f"{lon},{lat}" for lat, lon in coords])

    def _get(self, url: str, params: Dict[str, str]) -> Dict:
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise OSRMError(f"OSRM request failed: {exc}") from exc

        if data.get("code") != "Ok":
            raise OSRMError(f"OSRM error: {data.get('message', 'Unknown error')}")
        return data

    #----------------
    # table service (batch routing)
    #----------------
    def compute_table(self, sources: List[LatLon], destinations: List[LatLon]) -> Dict[str, List[List[Optional[float]]]]:
        """
        Calls the OSRM /table endpoint.

        Returns the full matrices, indexed [source][destination]:
            {"durations": [[seconds, ...], ...], "distances": [[metres, ...], ...]}
        Unroutable pairs come back as None.
        """
        if not sources or not destinations:
            return {"durations": [], "distances": []}

        coordinates = self.format_coordinates(sources + destinations)
        params = {
            "sources": ";".join(str(i) for i in range(len(sources))),
            "destinations": ";".join(
                str(i) for i in range(len(sources), len(sources) + len(destinations))
            ),
            "annotations": "duration,distance",
        }

        url = f"{self.base_url}/table/v1/{self.profile}/{coordinates}"
        data = self._get(url, params)

        return {
            "durations": data.get("durations", []),
            "distances": data.get("distances", []),
        }

    def durations_to(self, origins: List[LatLon], destination: LatLon) -> List[Optional[float]]:
        """
        Seconds from every origin to a single destination (one /table call).
        Used for driver -> pickup ETAs.
        """
        if not origins:
            return []
        table = self.compute_table(origins, [destination])
        durations = table["durations"]
        return [row[0] if row else None for row in durations]

"""
catalog/models.py -- Domain dataclasses for the location catalog.

Pure data containers with zero logic. Persistence lives in catalog/store.py.

A catalog entry is split across two tables: `locations` holds the place
(name and address, coordinates) and `toilets` holds the facility at that
place (prices, description, rating). Listings read the joined
`location_view`, which is what the Locations allow-list describes.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Location:
    """A new catalog entry as submitted by a signed-in user.

    rating, vote_nr, date_added and validated are not client-settable: the
    store writes 0, 0, now and 0 (not yet validated by an admin).
    """

    name: str
    country: str
    city: str
    street: str
    latitude: float
    longitude: float
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    description: Optional[str] = None
    id: Optional[int] = None  # toilets.id once stored

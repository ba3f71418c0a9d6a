# backend/ecotrack/api/routes/events.py
# Routes /events : CRUD, inscriptions et listes personnelles des événements (capacité obligatoire).

from ecotrack.services.participation.kinds import EVENTS

from ._resources import build_resource_router

router = build_resource_router(EVENTS, prefix="/events", tag="events")

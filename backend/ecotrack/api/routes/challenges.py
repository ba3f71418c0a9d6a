# backend/ecotrack/api/routes/challenges.py
# Routes /challenges : CRUD, participation et listes personnelles des challenges éco.

from ecotrack.services.participation.kinds import CHALLENGES

from ._resources import build_resource_router

router = build_resource_router(CHALLENGES, prefix="/challenges", tag="challenges")

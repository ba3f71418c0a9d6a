# backend/ecotrack/core/utils.py
# Fonctions temporelles (UTC aware) utilisées pour les horodatages persistés.

import datetime as dt


def utcnow() -> dt.datetime:
    """Date/heure UTC (timezone-aware).

    Description:
        Retourne `datetime.now(timezone.utc)`. Tous les horodatages persistés
        (`created_at`, `joined_at`, ...) passent par cette fonction.

    Returns:
        datetime.datetime: Timestamp UTC (aware).
    """
    return dt.datetime.now(dt.timezone.utc)


def as_utc(value: dt.datetime | None) -> dt.datetime | None:
    """Normalise une date en UTC aware.

    Description:
        Le driver peut renvoyer des dates naïves (UTC implicite côté BSON) ; on
        attache alors `timezone.utc` pour rendre les comparaisons sûres.

    Args:
        value (datetime | None): Date éventuellement naïve.

    Returns:
        datetime | None: Date aware en UTC, ou None.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.timezone.utc)
    return value.astimezone(dt.timezone.utc)

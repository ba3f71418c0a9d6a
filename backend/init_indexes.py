# backend/init_indexes.py
# Crée (ou met à jour) les index des collections challenges / events, puis affiche le rapport.

import asyncio
import sys

from dotenv import load_dotenv
from pymongo.errors import PyMongoError
from rich import print

load_dotenv()

from ecotrack.db.mongodb import close_client, get_db  # noqa: E402
from ecotrack.db.seed_indexes import ensure_indexes  # noqa: E402

STATUS_ICONS = {"kept": "🔁", "created": "✅", "replaced": "♻️"}


async def main() -> int:
    db = get_db()
    try:
        await db.command("ping")
        print("✅ Connexion à MongoDB réussie.")
        report = await ensure_indexes(db)
    except PyMongoError as e:
        print(f"[red]❌ Échec MongoDB : {e}[/red]")
        return 1
    finally:
        close_client()

    for coll, indexes in report.items():
        print(f"[bold]{coll}[/bold]")
        for name, status in indexes.items():
            print(f"  {STATUS_ICONS.get(status, '•')} {name}: {status}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))

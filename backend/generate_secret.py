# backend/generate_secret.py
# Ajoute une clé JWT_SECRET_KEY aléatoire dans le .env (section "# Auth") si elle n’existe pas encore.

import os
import secrets

from rich import print

ENV_PATH = ".env"
SECRET_KEY_NAME = "JWT_SECRET_KEY"
ANCHOR_COMMENT = "# Auth"


def generate_secret_key(bits: int = 512) -> str:
    return secrets.token_hex(bits // 8)


def env_key_exists(path: str, key: str) -> bool:
    if not os.path.exists(path):
        return False
    with open(path, "r", encoding="utf-8") as f:
        return any(line.strip().startswith(f"{key}=") for line in f)


def insert_key_after_anchor(path: str, key: str, value: str, anchor: str) -> bool:
    """Insère `key=value` sous la ligne `anchor` ; à défaut, en fin de fichier (créé si absent).

    Returns:
        bool: True si le marqueur a été trouvé.
    """
    lines: list[str] = []
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            lines = f.readlines()

    inserted = False
    new_lines = []
    for line in lines:
        new_lines.append(line)
        if not inserted and line.strip() == anchor:
            new_lines.append(f"{key}={value}\n")
            inserted = True

    if not inserted:
        new_lines.append(f"\n{anchor}\n{key}={value}\n")

    with open(path, "w", encoding="utf-8") as f:
        f.writelines(new_lines)

    return inserted


if __name__ == "__main__":
    if env_key_exists(ENV_PATH, SECRET_KEY_NAME):
        print(f"🔐 Clé {SECRET_KEY_NAME} déjà définie dans {ENV_PATH}. Aucune modification.")
    else:
        new_key = generate_secret_key()
        inserted = insert_key_after_anchor(ENV_PATH, SECRET_KEY_NAME, new_key, ANCHOR_COMMENT)
        if inserted:
            print(f"[green]✅ Clé {SECRET_KEY_NAME} ajoutée après '{ANCHOR_COMMENT}' dans {ENV_PATH}.[/green]")
        else:
            print(f"[yellow]⚠️ Aucun marqueur '{ANCHOR_COMMENT}' trouvé. Clé ajoutée à la fin de {ENV_PATH}.[/yellow]")

"""
Script de lancement du serveur de développement.

Lance l'application FastAPI avec uvicorn sur l'hôte et le port configurés (`APP_HOST`, `APP_PORT`);
la variable `PORT` reste prioritaire pour les environnements qui l'imposent.
"""

import os

import uvicorn

from zwds.app.main import app
from zwds.core.container import container


def main():
    """Point d'entrée du serveur."""
    settings = container.settings
    port = int(os.environ.get("PORT", settings.APP_PORT))
    uvicorn.run(app, host=settings.APP_HOST, port=port, reload=False)


if __name__ == "__main__":
    main()

import os
from dotenv import load_dotenv

# Chargement des variables d'environnement
load_dotenv()

SERVICE_NAME = "product-showcase"

PORT = int(os.getenv("PORT", 3000))

# URL du catalogue (l'app elle-même par défaut)
CATALOG_URL = os.getenv("CATALOG_URL", f"http://localhost:{PORT}")
ISR_REVALIDATE_SECONDS = float(os.getenv("ISR_REVALIDATE_SECONDS", 10))

DEFAULT_SESSION_SECRET = "supersecretkey"
SESSION_SECRET = os.getenv("SESSION_SECRET") or DEFAULT_SESSION_SECRET
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", 30 * 24 * 60 * 60))
SESSION_COOKIE_NAME = "session-token"

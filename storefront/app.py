import os
import logging
from typing import Any
from dotenv import load_dotenv

# Initialize environment configuration from local or project-level .env files
dotenv_paths = [
    os.path.join(os.path.dirname(__file__), '.env'),
    os.path.join(os.path.dirname(os.path.dirname(__file__)), '.env'),
    os.path.join(os.path.dirname(os.path.dirname(__file__)), '.env.example')
]

for path in dotenv_paths:
    if os.path.exists(path):
        load_dotenv(path)
        break

from flask import Flask, jsonify
from flask_cors import CORS
from storefront.db import init_db
from storefront.pricing.catalog import CATALOG
from storefront.routes.admin import admin_bp
from storefront.routes.catalog import catalog_bp
from storefront.routes.checkout import checkout_bp

# Configure high-level logging defaults for the storefront service
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)

app.register_blueprint(catalog_bp, url_prefix="/api/v1")
app.register_blueprint(checkout_bp, url_prefix="/api/v1")
app.register_blueprint(admin_bp, url_prefix="/api/v1")

@app.route("/api/v1/health")
def health() -> Any:
    """
    Verifies the operational status of the Flask application.

    Returns:
        A JSON response indicating the service is healthy.
    """
    return jsonify({"status": "ok", "catalogVersion": CATALOG.version})

if __name__ == "__main__":
    # Ensure the database schema exists and the catalog is seeded before accepting requests
    init_db()
    app.run(port=int(os.environ.get("PORT", 8000)), debug=os.environ.get("FLASK_DEBUG", "false").lower() == "true")

#!/usr/bin/env python3
"""
Backend Application
===================

Main entry point for the listing import API.
Integrates:
- URL import and photo ingestion
- Item assistant (description, pricing)
- Marketplace image proxy
- Photos stored in files mode
"""

from flask import Flask
from flask_cors import CORS

from backend.api import register_routes
from backend.listing_import.config import config
from backend.listing_import.logger import logger


def create_app() -> Flask:
    """Create the Flask app with CORS and all API routes."""
    app = Flask(__name__)
    CORS(app,
         resources={r"/api/*": {"origins": "*"}, r"/proxy": {"origins": "*"}, r"/uploads/*": {"origins": "*"}},
         methods=['GET', 'POST', 'OPTIONS'],
         allow_headers=['Content-Type', 'Authorization'])
    register_routes(app)
    return app


app = create_app()


if __name__ == '__main__':
    logger.info(f"Listing Import API on {config.HOST}:{config.PORT} (debug={config.DEBUG}, ai={config.is_ai_enabled()})")
    app.run(host=config.HOST, port=config.PORT, debug=config.DEBUG, threaded=True)

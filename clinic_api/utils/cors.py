"""
CORS Configuration
The dashboard frontend lives on its own origin and sends cookies
"""

CORS_CONFIG = {
    "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    "allow_headers": [
        "Content-Type",
        "Authorization",
        "X-Requested-With",
        "X-CSRF-Token",
        "Accept",
        "Origin",
    ],
    "expose_headers": [
        "Content-Type",
        "Content-Disposition",
    ],
    # Credentials require an explicit origin, never "*"
    "supports_credentials": True,
    "max_age": 86400,  # 24 hours
}


def init_cors(app):
    """
    Initialize CORS for the Flask application
    """
    from flask_cors import CORS

    origin = app.config['FRONTEND_ORIGIN']
    CORS(app,
         resources={r"/api/*": {"origins": [origin]}},
         methods=CORS_CONFIG["methods"],
         allow_headers=CORS_CONFIG["allow_headers"],
         expose_headers=CORS_CONFIG["expose_headers"],
         supports_credentials=CORS_CONFIG["supports_credentials"],
         max_age=CORS_CONFIG["max_age"])

    app.logger.info(f"CORS enabled for {origin}")

"""
Security Utilities & Middleware
Secret key handling, CORS, response headers, JSON error handlers and
request logging for the recurring jobs API.
"""
import os
import secrets
from typing import Dict, Any
from flask import Flask, request, jsonify, Response
from flask_cors import CORS
import logging

logger = logging.getLogger(__name__)

# Probe endpoints are not logged per request
QUIET_PATHS = ('/api/health', '/api/ping', '/api/ready')


class SecurityConfig:
    """Secret key validation and generation"""

    @staticmethod
    def generate_secret_key() -> str:
        return secrets.token_hex(32)

    @staticmethod
    def validate_secret_key(secret_key: str) -> bool:
        """
        Check that a secret key is long enough and not an obvious default

        Args:
            secret_key: Secret key to validate

        Returns:
            True if key is usable, False otherwise
        """
        if not secret_key:
            return False

        if len(secret_key) < 32:
            logger.warning("Secret key is too short (minimum 32 characters)")
            return False

        weak_keys = ['dev', 'test', 'secret', 'password', '12345']
        if any(weak in secret_key.lower() for weak in weak_keys):
            logger.warning("Secret key appears to be weak or default")
            return False

        return True

    @staticmethod
    def ensure_secret_key(config: Dict[str, Any]) -> str:
        """Return the configured secret key, or a generated one if it is unusable"""
        secret_key = config.get('SECRET_KEY')

        if not secret_key or not SecurityConfig.validate_secret_key(secret_key):
            if os.environ.get('FLASK_ENV') == 'production':
                logger.error("No secure SECRET_KEY in production, generating one for this process")

            secret_key = SecurityConfig.generate_secret_key()
            logger.warning(f"Generated new secret key (length: {len(secret_key)})")

        return secret_key


def setup_security_headers(app: Flask):
    """Add security headers to every response"""
    @app.after_request
    def add_security_headers(response: Response) -> Response:
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        # JSON API only, nothing to load
        response.headers['Content-Security-Policy'] = "default-src 'none'; frame-ancestors 'none'"

        if not app.debug:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        return response

    logger.info("Security headers configured")


def setup_cors(app: Flask, config: Dict[str, Any]):
    """Configure CORS for the API routes"""
    cors_origins = config.get('CORS_ORIGINS', ['*'])
    cors_methods = config.get('CORS_METHODS', ['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'])
    cors_headers = config.get('CORS_ALLOW_HEADERS', ['Content-Type', 'Authorization'])

    if not app.debug and '*' in cors_origins:
        logger.warning("Using wildcard CORS in production. Set CORS_ORIGINS.")

    CORS(
        app,
        resources={r"/api/*": {"origins": cors_origins}},
        methods=cors_methods,
        allow_headers=cors_headers,
        supports_credentials='*' not in cors_origins,
        max_age=3600
    )

    logger.info(f"CORS configured: origins={cors_origins}")


def sanitize_error_response(error: Exception, include_details: bool = False) -> Dict[str, Any]:
    """
    Build a 500 response body without leaking internals

    Args:
        error: Exception object
        include_details: Whether to include the exception text (debug only)
    """
    error_response = {
        'success': False,
        'error': 'Internal Server Error'
    }

    if include_details:
        error_response['details'] = str(error)
        error_response['type'] = type(error).__name__

    return error_response


def setup_error_handlers(app: Flask):
    """Register JSON error handlers using the API's error envelope"""
    include_details = app.debug

    def envelope(message: str, status: int):
        return jsonify({'success': False, 'error': message}), status

    @app.errorhandler(400)
    def bad_request(error):
        return envelope('The request could not be understood or was missing required parameters', 400)

    @app.errorhandler(404)
    def not_found(error):
        return envelope('The requested resource was not found', 404)

    @app.errorhandler(405)
    def method_not_allowed(error):
        return envelope('The method is not allowed for the requested URL', 405)

    @app.errorhandler(413)
    def request_entity_too_large(error):
        return envelope('The request body is too large', 413)

    @app.errorhandler(500)
    def internal_server_error(error):
        logger.error(f"Internal server error: {error}", exc_info=True)
        return jsonify(sanitize_error_response(error, include_details)), 500

    logger.info("Error handlers registered")


def setup_request_logging(app: Flask):
    """Log each request and its response status"""
    @app.before_request
    def log_request():
        if request.path in QUIET_PATHS:
            return

        logger.info(
            f"Request: {request.method} {request.path} "
            f"from {request.remote_addr}"
        )

    @app.after_request
    def log_response(response: Response) -> Response:
        if request.path in QUIET_PATHS:
            return response

        logger.info(
            f"Response: {request.method} {request.path} "
            f"status={response.status_code}"
        )

        return response

    logger.info("Request logging configured")


def validate_environment_variables(required_vars: list, app: Flask) -> bool:
    """Warn about missing environment variables; returns True when all are set"""
    missing_vars = [var for var in required_vars if not os.environ.get(var)]

    for var in missing_vars:
        logger.warning(f"Missing environment variable: {var}")

    if missing_vars and not app.debug:
        logger.error(f"Missing required environment variables in production: {missing_vars}")

    return len(missing_vars) == 0


def setup_security(app: Flask, config: Dict[str, Any]):
    """
    Setup all security features for the application

    Args:
        app: Flask application instance
        config: Application configuration mapping
    """
    logger.info("Configuring application security...")

    app.secret_key = SecurityConfig.ensure_secret_key(config)
    setup_cors(app, config)
    setup_security_headers(app)
    setup_error_handlers(app)
    setup_request_logging(app)

    if not app.debug and not app.testing:
        validate_environment_variables(['SECRET_KEY', 'DATABASE_URL'], app)

    logger.info("Security configuration complete")

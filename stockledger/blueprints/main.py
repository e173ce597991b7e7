"""Main blueprint with health check endpoints."""
from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from stockledger.database import get_session
from stockledger.services.cache_service import get_cache

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """
    Health check endpoint that validates the database connection.

    Returns:
        200: Healthy (DB connected)
        500: Unhealthy (DB error)
    """
    try:
        session = get_session()
        row = session.execute(text("SELECT 1 as health_check")).fetchone()
    except SQLAlchemyError as e:
        return jsonify({
            'status': 'unhealthy',
            'database': 'disconnected',
            'error': str(e),
        }), 500

    if not row or row[0] != 1:
        return jsonify({'status': 'unhealthy', 'database': 'error'}), 500

    return jsonify({
        'status': 'healthy',
        'database': 'connected',
        # Cache is optional: "degraded" still serves every request
        'cache': 'connected' if get_cache().is_available() else 'degraded',
    }), 200

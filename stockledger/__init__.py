"""Flask application factory."""
import logging
import os

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from stockledger.database import init_db


def create_app(config_object='config.Config', test_config=None):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)
    if test_config:
        app.config.update(test_config)

    if not app.debug and not app.testing:
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s %(levelname)s [%(name)s] %(message)s'
        )

    # Error tracking in production
    sentry_dsn = app.config.get('SENTRY_DSN')
    if sentry_dsn and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[FlaskIntegration()],
            traces_sample_rate=0.1,
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache for derived read models
    from stockledger.services.cache_service import init_cache
    init_cache(app)

    # Prometheus instrumentation
    from stockledger.blueprints.metrics import setup_metrics_instrumentation, record_rejection
    setup_metrics_instrumentation(app)

    # Initialize database
    init_db(app)

    # Error Handlers
    from stockledger.exceptions import LedgerError

    @app.errorhandler(LedgerError)
    def handle_ledger_error(error):
        """Domain errors become JSON with their own status code."""
        record_rejection(error)
        if error.status_code >= 500:
            app.logger.error(f"{type(error).__name__} [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"{type(error).__name__} [{error.status_code}]: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'status': 'error', 'message': error.description}), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error'}), 500

    # Register blueprints
    from stockledger.blueprints.main import main_bp
    from stockledger.blueprints.metrics import metrics_bp
    from stockledger.blueprints.sales import sales_bp
    from stockledger.blueprints.purchases import purchases_bp
    from stockledger.blueprints.inventory import inventory_bp
    from stockledger.blueprints.held_sales import held_sales_bp
    from stockledger.blueprints.parties import parties_bp
    from stockledger.blueprints.cash import cash_bp
    from stockledger.blueprints.expenses import expenses_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(metrics_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(held_sales_bp)
    app.register_blueprint(parties_bp)
    app.register_blueprint(cash_bp)
    app.register_blueprint(expenses_bp)

    # Register CLI commands
    from stockledger.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app

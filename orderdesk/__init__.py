"""Flask application factory."""
import os
import traceback

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from orderdesk.database import init_db


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    # Sentry error tracking, production only
    sentry_dsn = app.config.get('SENTRY_DSN')
    if sentry_dsn and app.config.get('ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration

        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[FlaskIntegration()],
            traces_sample_rate=app.config.get('SENTRY_TRACES_SAMPLE_RATE', 0.1),
            environment=app.config.get('ENV'),
            release=os.getenv('GIT_COMMIT', 'unknown')
        )

    # Redis cache for analytics
    from orderdesk.services.cache_service import init_cache
    init_cache(app)

    # Prometheus instrumentation
    from orderdesk.blueprints.metrics import setup_metrics_instrumentation
    setup_metrics_instrumentation(app)

    # Behind Nginx in production
    if app.config.get('ENV') == 'production':
        from werkzeug.middleware.proxy_fix import ProxyFix
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1, x_prefix=0)

    init_db(app)

    from orderdesk.middleware import load_current_user

    @app.before_request
    def before_request_handler():
        """Load the acting user for each request."""
        load_current_user()

    # Error Handlers
    from orderdesk.exceptions import OrderDeskError

    @app.errorhandler(OrderDeskError)
    def handle_order_desk_error(error):
        """Turn application exceptions into JSON error bodies."""
        if error.status_code >= 500:
            app.logger.error(f"{error.kind} [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"{error.kind} [{error.status_code}] on {request.path}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({
            'status': 'error',
            'kind': error.name.replace(' ', ''),
            'message': error.description,
        }), error.code

    @app.errorhandler(Exception)
    def internal_error(error):
        app.logger.error(f"Unhandled Exception: {error}")
        app.logger.error(f"Traceback: {traceback.format_exc()}")
        return jsonify({
            'status': 'error',
            'kind': 'InternalError',
            'message': 'Internal Server Error',
        }), 500

    # Register blueprints
    from orderdesk.blueprints.main import main_bp
    from orderdesk.blueprints.auth import auth_bp
    from orderdesk.blueprints.catalog import catalog_bp
    from orderdesk.blueprints.customers import customers_bp
    from orderdesk.blueprints.orders import orders_bp
    from orderdesk.blueprints.order_requests import order_requests_bp
    from orderdesk.blueprints.inventory import inventory_bp
    from orderdesk.blueprints.expenses import expenses_bp
    from orderdesk.blueprints.analytics import analytics_bp
    from orderdesk.blueprints.metrics import metrics_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(order_requests_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(expenses_bp)
    app.register_blueprint(analytics_bp)
    app.register_blueprint(metrics_bp)

    from orderdesk.cli_commands import init_cli_commands
    init_cli_commands(app)

    app.logger.info(f"Order desk started (env={app.config.get('ENV')}, cache={app.config.get('CACHE_ENABLED')})")
    return app

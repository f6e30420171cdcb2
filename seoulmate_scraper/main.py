from typing import Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from seoulmate_scraper.orchestration.scheduler import ScraperScheduler
from seoulmate_scraper.orchestration.scraper_service import ScraperService, get_scraper_service
from seoulmate_scraper.routes.scraper import scraper_bp
from seoulmate_scraper.utils.config import get_config
from seoulmate_scraper.utils.logging_config import setup_flask_logging, get_logger


def create_app(service: Optional[ScraperService] = None, start_scheduler: bool = True,
               testing: bool = False):
    """Configure the Flask application around a scraper service"""
    app = Flask(__name__)

    # Load configuration
    config = get_config()
    app.config['SECRET_KEY'] = config.app.secret_key
    app.config['TESTING'] = testing

    # Enable CORS for all routes
    CORS(app, origins=config.app.cors_origins)

    # Register blueprints
    app.register_blueprint(scraper_bp, url_prefix='/api')

    # Setup logging
    setup_flask_logging(app)

    service = service or get_scraper_service()
    scheduler = ScraperScheduler(service, config.scheduler)
    app.extensions['scraper_service'] = service
    app.extensions['scraper_scheduler'] = scheduler

    if start_scheduler:
        scheduler.start()
        scheduler.run_initial_if_empty()

    @app.before_request
    def _log_request_start():
        get_logger().debug(f"REQ {request.method} {request.path}")

    @app.after_request
    def _log_request_end(response):
        get_logger().debug(f"RES {response.status_code} {response.content_type}")
        return response

    @app.route('/api/health', methods=['GET'])
    def health_check():
        """Lightweight health endpoint; always 200 with diagnostics."""
        validation = get_config().validate_config()
        diagnostics = {
            'status': 'healthy' if validation.get('valid') else 'unhealthy',
            'configuration': {
                'issues': validation.get('issues', []),
                'scraper': validation.get('config_summary', {}).get('scraper', {}),
                'app': validation.get('config_summary', {}).get('app', {})
            },
            'scheduler': scheduler.status(),
            'places': service.get_place_count(),
            'version': '1.0.0'
        }
        return jsonify(diagnostics), 200

    return app

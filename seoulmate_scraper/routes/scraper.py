"""
Scraper routes.
Manual and asynchronous scrape triggers, run status, and place lookups.
"""

from flask import Blueprint, current_app, jsonify, request

from seoulmate_scraper.orchestration.scraper_service import ScrapeInProgressError, ScraperService
from seoulmate_scraper.storage.memory_store import RunTrigger
from seoulmate_scraper.utils.logging_config import get_logger

scraper_bp = Blueprint('scraper', __name__)
logger = get_logger()

MAX_PAGE_SIZE = 500


def _service() -> ScraperService:
    return current_app.extensions['scraper_service']


@scraper_bp.route('/scraper/run', methods=['POST'])
def run_scraper():
    """Run a scrape synchronously and return the number of new places"""
    try:
        service = _service()
        new_count = service.scrape_and_save(trigger=RunTrigger.API)
        return jsonify({
            'success': True,
            'new_places': new_count,
            'total_places': service.get_place_count()
        })
    except ScrapeInProgressError as e:
        return jsonify({'success': False, 'error': str(e)}), 409
    except Exception as e:
        logger.error(f"Error running scraper: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500


@scraper_bp.route('/scraper/run-async', methods=['POST'])
def run_scraper_async():
    """Queue a scrape and return immediately with its run id"""
    try:
        service = _service()
        run, _ = service.scrape_and_save_async(trigger=RunTrigger.API)
        logger.info(f"Asynchronous scrape queued: {run.id}")
        return jsonify({
            'success': True,
            'run_id': run.id,
            'status': run.status.value,
            'message': 'Scraper started in background'
        }), 202
    except Exception as e:
        logger.error(f"Error starting asynchronous scrape: {str(e)}")
        return jsonify({'success': False, 'error': str(e)}), 500


@scraper_bp.route('/scraper/runs', methods=['GET'])
def list_runs():
    try:
        limit = min(int(request.args.get('limit', 20)), 100)
        runs = _service().store.get_all_runs(limit=limit)
        return jsonify({'runs': [run.to_dict() for run in runs], 'total': len(runs)})
    except ValueError:
        return jsonify({'error': 'limit must be an integer'}), 400


@scraper_bp.route('/scraper/runs/<run_id>', methods=['GET'])
def get_run(run_id):
    """Get run status and its progress events"""
    try:
        store = _service().store
        run = store.get_run(run_id)
        if not run:
            return jsonify({'error': 'Run not found'}), 404

        data = run.to_dict()
        data['progress_events'] = [event.to_dict() for event in store.get_progress_events(run_id)]
        return jsonify(data)
    except Exception as e:
        logger.error(f"Error getting run {run_id}: {str(e)}")
        return jsonify({'error': str(e)}), 500


@scraper_bp.route('/scraper/count', methods=['GET'])
def get_place_count():
    return jsonify({'count': _service().get_place_count()})


@scraper_bp.route('/scraper/test-connection', methods=['GET'])
def test_connection():
    result = _service().test_connection()
    return jsonify(result), (200 if result.get('success') else 502)


@scraper_bp.route('/scraper/places', methods=['GET'])
def list_places():
    try:
        limit = min(int(request.args.get('limit', 50)), MAX_PAGE_SIZE)
        offset = max(int(request.args.get('offset', 0)), 0)
    except ValueError:
        return jsonify({'error': 'limit and offset must be integers'}), 400

    store = _service().store
    places = store.list_places(limit=limit, offset=offset)
    return jsonify({
        'places': [place.to_dict() for place in places],
        'total': store.count_places(),
        'limit': limit,
        'offset': offset
    })


@scraper_bp.route('/scraper/places/<identifier>', methods=['GET'])
def get_place(identifier):
    place = _service().store.get_place(identifier)
    if not place:
        return jsonify({'error': 'Place not found'}), 404
    return jsonify(place.to_dict())

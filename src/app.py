"""
Flask web application for the Tournament Bracket API.
"""
import os
from datetime import datetime
from flask import Flask, request, jsonify
from core.errors import TournamentError, NotFound, InvalidArgument, AlreadyExists, Conflict, BracketIntegrityError
from core.elimination import generate_bracket, play_match, get_bracket_display
from core.storage import TournamentStore, DEFAULT_LOCK_TIMEOUT

app = Flask(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
DATA_DIR = os.environ.get('TOURNAMENT_DATA_DIR', os.path.join(BASE_DIR, 'data'))
LOCK_TIMEOUT = float(os.environ.get('TOURNAMENT_LOCK_TIMEOUT', DEFAULT_LOCK_TIMEOUT))

ERROR_STATUS = {
    NotFound: 404,
    InvalidArgument: 400,
    AlreadyExists: 409,
    Conflict: 409,
    BracketIntegrityError: 500,
}

# One store per data directory so threads in this process share its lock
_stores = {}


def get_store() -> TournamentStore:
    """Return the store for the configured data directory."""
    store = _stores.get(DATA_DIR)
    if store is None:
        store = TournamentStore(DATA_DIR, lock_timeout=LOCK_TIMEOUT)
        _stores[DATA_DIR] = store
    return store


@app.errorhandler(TournamentError)
def handle_tournament_error(e):
    status = ERROR_STATUS.get(type(e), 400)
    if status >= 500:
        app.logger.error(f'{request.method} {request.path}: {e.message}')
    else:
        app.logger.warning(f'{request.method} {request.path} rejected: {e.message}')
    return jsonify({'error': e.message, 'code': e.code}), status


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidArgument('Request body must be a JSON object')
    return data


def _require_text(data: dict, field: str) -> str:
    value = data.get(field)
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgument(f'Missing {field}')
    return value.strip()


def _require_id(data: dict, field: str) -> int:
    value = data.get(field)
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f'{field} must be an integer')
    return value


def _tournament_payload(store, tournament) -> dict:
    payload = tournament.to_dict()
    users = {u.id: u for u in store.list_users()}
    payload['participants'] = [users[uid].to_dict() for uid in tournament.participant_ids if uid in users]
    return payload


def _bracket_payload(store, bracket) -> dict:
    payload = bracket.to_dict()
    payload['matches'] = [m.to_dict() for m in store.get_matches_by_bracket(bracket.id)]
    return payload


@app.route('/health')
def health():
    return jsonify({'status': 'ok'})


# ----------------------------------------------------------------------
# Users
# ----------------------------------------------------------------------

@app.route('/api/users', methods=['POST'])
def api_create_user():
    """Register a participant profile."""
    data = _json_body()
    user = get_store().create_user(
        _require_text(data, 'first_name'),
        _require_text(data, 'last_name'),
        _require_text(data, 'email'),
    )
    return jsonify(user.to_dict()), 201


@app.route('/api/users/<int:user_id>')
def api_get_user(user_id):
    user = get_store().get_user(user_id)
    if user is None:
        raise NotFound('User not found')
    return jsonify(user.to_dict())


@app.route('/api/users/<int:user_id>/matches')
def api_user_matches(user_id):
    """Every match the user plays in, ordered by round."""
    store = get_store()
    if store.get_user(user_id) is None:
        raise NotFound('User not found')
    return jsonify([m.to_dict() for m in store.get_matches_for_player(user_id)])


# ----------------------------------------------------------------------
# Tournaments
# ----------------------------------------------------------------------

@app.route('/api/tournaments', methods=['GET'])
def api_list_tournaments():
    store = get_store()
    return jsonify([_tournament_payload(store, t) for t in store.list_tournaments()])


@app.route('/api/tournaments', methods=['POST'])
def api_create_tournament():
    """Create a new tournament."""
    data = _json_body()
    name = _require_text(data, 'name')
    start_date = data.get('start_date')
    if start_date is not None:
        try:
            start_date = datetime.fromisoformat(str(start_date)).isoformat()
        except ValueError:
            raise InvalidArgument('start_date must be an ISO 8601 date or datetime')
    store = get_store()
    tournament = store.create_tournament(name, start_date=start_date)
    return jsonify(_tournament_payload(store, tournament)), 201


@app.route('/api/tournaments/<int:tournament_id>')
def api_get_tournament(tournament_id):
    store = get_store()
    tournament = store.get_tournament(tournament_id)
    if tournament is None:
        raise NotFound('Tournament not found')
    return jsonify(_tournament_payload(store, tournament))


@app.route('/api/tournaments/<int:tournament_id>/participants', methods=['POST'])
def api_add_participant(tournament_id):
    data = _json_body()
    store = get_store()
    tournament = store.add_participant(tournament_id, _require_id(data, 'user_id'))
    return jsonify(_tournament_payload(store, tournament))


@app.route('/api/tournaments/<int:tournament_id>/start', methods=['POST'])
def api_start_tournament(tournament_id):
    store = get_store()
    tournament = store.set_tournament_status(tournament_id, 'ongoing')
    return jsonify(_tournament_payload(store, tournament))


@app.route('/api/tournaments/<int:tournament_id>/finish', methods=['POST'])
def api_finish_tournament(tournament_id):
    store = get_store()
    tournament = store.set_tournament_status(tournament_id, 'completed')
    return jsonify(_tournament_payload(store, tournament))


# ----------------------------------------------------------------------
# Brackets and matches
# ----------------------------------------------------------------------

@app.route('/api/tournaments/<int:tournament_id>/bracket', methods=['POST'])
def api_generate_bracket(tournament_id):
    """Generate the single elimination bracket for a tournament."""
    store = get_store()
    bracket = generate_bracket(store, tournament_id)
    return jsonify(_bracket_payload(store, bracket)), 201


@app.route('/api/tournaments/<int:tournament_id>/bracket', methods=['GET'])
def api_get_bracket(tournament_id):
    """Bracket grouped by round, with the champion once decided."""
    display = get_bracket_display(get_store(), tournament_id)
    bracket = display['bracket']
    return jsonify({
        'id': bracket.id,
        'tournament_id': bracket.tournament_id,
        'total_rounds': display['total_rounds'],
        'current_round': display['current_round'],
        'champion': display['champion'],
        'rounds': [
            {
                'round': r['round'],
                'name': r['name'],
                'matches': [m.to_dict() for m in r['matches']],
            }
            for r in display['rounds']
        ],
    })


@app.route('/api/brackets/<int:bracket_id>/rounds/<int:round_number>/matches')
def api_round_matches(bracket_id, round_number):
    store = get_store()
    if store.get_bracket(bracket_id) is None:
        raise NotFound('Bracket not found')
    return jsonify([m.to_dict() for m in store.get_matches_by_bracket_and_round(bracket_id, round_number)])


@app.route('/api/matches/<int:match_id>/play', methods=['POST'])
def api_play_match(match_id):
    """Record the winner of a match."""
    data = _json_body()
    match = play_match(get_store(), match_id, _require_id(data, 'winner_id'))
    return jsonify(match.to_dict())


if __name__ == '__main__':
    app.run(debug=True, port=5000)

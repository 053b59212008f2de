"""
Shared pytest fixtures for tournament bracket tests.

Running tests:
    pytest tests/                  - full suite
    pytest tests/ -m "not slow"   - skip the threaded concurrency tests
"""
import pytest
import sys
import os

# Add src directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.storage import TournamentStore


@pytest.fixture
def store(tmp_path):
    """A store backed by a temporary data directory."""
    return TournamentStore(str(tmp_path / 'data'))


@pytest.fixture
def make_tournament(store):
    """Factory: tournament with n freshly registered participants.

    Returns (tournament, participant_ids) with ids in registration order.
    """
    def _make(n, name='Test Cup'):
        tournament = store.create_tournament(name)
        participant_ids = []
        for i in range(n):
            user = store.create_user(f'Player{i + 1}', 'Test', f'player{i + 1}@example.com')
            store.add_participant(tournament.id, user.id)
            participant_ids.append(user.id)
        return store.get_tournament(tournament.id), participant_ids
    return _make


@pytest.fixture
def temp_data_dir(tmp_path, monkeypatch):
    """Point the Flask app at a temporary data directory."""
    import app as app_module

    data_dir = tmp_path / 'data'
    data_dir.mkdir()
    monkeypatch.setattr(app_module, 'DATA_DIR', str(data_dir))
    return str(data_dir)


@pytest.fixture
def client(temp_data_dir):
    """Create a test client bound to the temporary data directory."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as client:
        yield client

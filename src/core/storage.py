"""
YAML-file persistence for users, tournaments, brackets and matches.

Each record kind lives in its own file inside the data directory:

    users.yaml        {'next_id': 3, 'records': [{...}, {...}]}
    tournaments.yaml
    brackets.yaml
    matches.yaml
    .lock             inter-process lock guarding all of the above

Records are kept in creation order, so matches of one round come back in the
order they were created. Every public method takes the store lock; callers
that need several reads and writes to appear atomic wrap them in
``store.transaction()``.
"""
import logging
import os
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional

import yaml
from filelock import FileLock

from .errors import AlreadyExists, BracketIntegrityError, Conflict, InvalidArgument, NotFound
from .models import Bracket, Match, Tournament, User, TOURNAMENT_STATUSES

logger = logging.getLogger(__name__)

USERS = 'users'
TOURNAMENTS = 'tournaments'
BRACKETS = 'brackets'
MATCHES = 'matches'

RECORD_FILES = {
    USERS: 'users.yaml',
    TOURNAMENTS: 'tournaments.yaml',
    BRACKETS: 'brackets.yaml',
    MATCHES: 'matches.yaml',
}

DEFAULT_LOCK_TIMEOUT = 10


class TournamentStore:
    def __init__(self, data_dir: str, lock_timeout: float = DEFAULT_LOCK_TIMEOUT):
        self.data_dir = data_dir
        os.makedirs(data_dir, exist_ok=True)
        self._file_lock = FileLock(os.path.join(data_dir, '.lock'), timeout=lock_timeout)
        self._thread_lock = threading.RLock()

    @contextmanager
    def transaction(self):
        """Hold the store lock for the duration of the block (reentrant)."""
        with self._thread_lock, self._file_lock:
            yield self

    # ------------------------------------------------------------------
    # File helpers
    # ------------------------------------------------------------------

    def _path(self, kind: str) -> str:
        return os.path.join(self.data_dir, RECORD_FILES[kind])

    def _load(self, kind: str) -> dict:
        path = self._path(kind)
        if not os.path.exists(path):
            return {'next_id': 1, 'records': []}
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.warning(f'Failed to parse {path}: {e}')
            raise BracketIntegrityError(f'Data file {RECORD_FILES[kind]} is unreadable') from e
        if not data:
            return {'next_id': 1, 'records': []}
        data.setdefault('next_id', 1)
        data.setdefault('records', [])
        return data

    def _save(self, kind: str, data: dict):
        with open(self._path(kind), 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    @staticmethod
    def _allocate_id(data: dict) -> int:
        record_id = data['next_id']
        data['next_id'] = record_id + 1
        return record_id

    @staticmethod
    def _find(data: dict, record_id: int) -> Optional[dict]:
        for record in data['records']:
            if record['id'] == record_id:
                return record
        return None

    @staticmethod
    def _now() -> str:
        return datetime.now().isoformat()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def create_user(self, first_name: str, last_name: str, email: str) -> User:
        email = email.strip().lower()
        with self.transaction():
            data = self._load(USERS)
            if any(u['email'] == email for u in data['records']):
                raise AlreadyExists('User with this email already exists')
            user = User(self._allocate_id(data), first_name.strip(), last_name.strip(), email,
                        created_at=self._now())
            data['records'].append(user.to_dict())
            self._save(USERS, data)
        logger.info(f'Registered user {user.id} ({email})')
        return user

    def get_user(self, user_id: int) -> Optional[User]:
        with self.transaction():
            record = self._find(self._load(USERS), user_id)
        return User.from_dict(record) if record else None

    def list_users(self) -> List[User]:
        with self.transaction():
            return [User.from_dict(r) for r in self._load(USERS)['records']]

    # ------------------------------------------------------------------
    # Tournaments
    # ------------------------------------------------------------------

    def create_tournament(self, name: str, start_date: Optional[str] = None) -> Tournament:
        with self.transaction():
            data = self._load(TOURNAMENTS)
            tournament = Tournament(self._allocate_id(data), name.strip(), start_date=start_date,
                                    created_at=self._now())
            data['records'].append(tournament.to_dict())
            self._save(TOURNAMENTS, data)
        logger.info(f'Created tournament {tournament.id} "{tournament.name}"')
        return tournament

    def get_tournament(self, tournament_id: int) -> Optional[Tournament]:
        with self.transaction():
            record = self._find(self._load(TOURNAMENTS), tournament_id)
        return Tournament.from_dict(record) if record else None

    def list_tournaments(self) -> List[Tournament]:
        """All tournaments, newest first."""
        with self.transaction():
            records = self._load(TOURNAMENTS)['records']
        return [Tournament.from_dict(r) for r in reversed(records)]

    def get_participants(self, tournament_id: int) -> List[int]:
        tournament = self.get_tournament(tournament_id)
        if tournament is None:
            raise NotFound('Tournament not found')
        return list(tournament.participant_ids)

    def add_participant(self, tournament_id: int, user_id: int) -> Tournament:
        with self.transaction():
            data = self._load(TOURNAMENTS)
            record = self._find(data, tournament_id)
            if record is None:
                raise NotFound('Tournament not found')
            if record['status'] != 'upcoming':
                raise Conflict('Cannot add participants to a tournament that has already started')
            if self.get_user(user_id) is None:
                raise NotFound('User not found')
            if user_id in record['participant_ids']:
                raise AlreadyExists('User is already a participant')
            record['participant_ids'].append(user_id)
            self._save(TOURNAMENTS, data)
            return Tournament.from_dict(record)

    def set_tournament_status(self, tournament_id: int, status: str) -> Tournament:
        """Move a tournament along upcoming -> ongoing -> completed."""
        if status not in TOURNAMENT_STATUSES:
            raise InvalidArgument(f'Unknown tournament status: {status}')
        with self.transaction():
            data = self._load(TOURNAMENTS)
            record = self._find(data, tournament_id)
            if record is None:
                raise NotFound('Tournament not found')
            current = record['status']
            if status == 'ongoing' and current != 'upcoming':
                raise Conflict('Tournament has already started or finished')
            if status == 'completed' and current == 'completed':
                raise Conflict('Tournament is already finished')
            if status == 'upcoming' and current != 'upcoming':
                raise Conflict('A started tournament cannot return to upcoming')
            record['status'] = status
            self._save(TOURNAMENTS, data)
        logger.info(f'Tournament {tournament_id} is now {status}')
        return Tournament.from_dict(record)

    # ------------------------------------------------------------------
    # Brackets
    # ------------------------------------------------------------------

    def save_bracket(self, bracket: Bracket) -> Bracket:
        """Insert a new bracket and link it to its tournament."""
        with self.transaction():
            tournaments = self._load(TOURNAMENTS)
            tournament = self._find(tournaments, bracket.tournament_id)
            if tournament is None:
                raise NotFound('Tournament not found')
            brackets = self._load(BRACKETS)
            if tournament.get('bracket_id') is not None or any(
                    b['tournament_id'] == bracket.tournament_id for b in brackets['records']):
                raise AlreadyExists('Bracket already exists for this tournament')
            bracket.id = self._allocate_id(brackets)
            bracket.created_at = bracket.created_at or self._now()
            brackets['records'].append(bracket.to_dict())
            self._save(BRACKETS, brackets)
            tournament['bracket_id'] = bracket.id
            self._save(TOURNAMENTS, tournaments)
        return bracket

    def delete_bracket(self, bracket_id: int):
        """Remove a bracket, its matches and the tournament link."""
        with self.transaction():
            brackets = self._load(BRACKETS)
            record = self._find(brackets, bracket_id)
            if record is None:
                return
            matches = self._load(MATCHES)
            matches['records'] = [m for m in matches['records'] if m['bracket_id'] != bracket_id]
            self._save(MATCHES, matches)
            brackets['records'] = [b for b in brackets['records'] if b['id'] != bracket_id]
            self._save(BRACKETS, brackets)
            tournaments = self._load(TOURNAMENTS)
            tournament = self._find(tournaments, record['tournament_id'])
            if tournament is not None and tournament.get('bracket_id') == bracket_id:
                tournament['bracket_id'] = None
                self._save(TOURNAMENTS, tournaments)
        logger.info(f'Deleted bracket {bracket_id}')

    def get_bracket(self, bracket_id: int) -> Optional[Bracket]:
        with self.transaction():
            record = self._find(self._load(BRACKETS), bracket_id)
        return Bracket.from_dict(record) if record else None

    def get_bracket_for_tournament(self, tournament_id: int) -> Optional[Bracket]:
        with self.transaction():
            for record in self._load(BRACKETS)['records']:
                if record['tournament_id'] == tournament_id:
                    return Bracket.from_dict(record)
        return None

    # ------------------------------------------------------------------
    # Matches
    # ------------------------------------------------------------------

    def save_matches(self, matches: List[Match]) -> List[Match]:
        """
        Insert new matches and append their ids to the owning bracket.

        A (bracket, round) pair is filled exactly once: if the store already
        holds matches for a round being inserted, nothing is written and
        Conflict is raised.
        """
        if not matches:
            return []
        with self.transaction():
            brackets = self._load(BRACKETS)
            data = self._load(MATCHES)
            existing = {(m['bracket_id'], m['round']) for m in data['records']}
            incoming = {(m.bracket_id, m.round) for m in matches}
            for bracket_id, round_number in sorted(incoming):
                if self._find(brackets, bracket_id) is None:
                    raise NotFound('Bracket not found')
                if (bracket_id, round_number) in existing:
                    raise Conflict(f'Round {round_number} already exists in bracket {bracket_id}')
            previous_records = list(data['records'])
            previous_next_id = data['next_id']
            now = self._now()
            for match in matches:
                match.id = self._allocate_id(data)
                match.created_at = match.created_at or now
                data['records'].append(match.to_dict())
                self._find(brackets, match.bracket_id)['match_ids'].append(match.id)
            self._save(MATCHES, data)
            try:
                self._save(BRACKETS, brackets)
            except Exception:
                # matches.yaml was already written; put it back
                logger.warning(f'Rolling back {len(matches)} inserted matches')
                data['records'] = previous_records
                data['next_id'] = previous_next_id
                self._save(MATCHES, data)
                for match in matches:
                    match.id = None
                raise
        return matches

    def get_match(self, match_id: int) -> Optional[Match]:
        with self.transaction():
            record = self._find(self._load(MATCHES), match_id)
        return Match.from_dict(record) if record else None

    def get_matches_by_bracket(self, bracket_id: int) -> List[Match]:
        with self.transaction():
            records = self._load(MATCHES)['records']
        return [Match.from_dict(r) for r in records if r['bracket_id'] == bracket_id]

    def get_matches_by_bracket_and_round(self, bracket_id: int, round_number: int) -> List[Match]:
        """Matches of one round in creation order."""
        return [m for m in self.get_matches_by_bracket(bracket_id) if m.round == round_number]

    def get_matches_for_player(self, user_id: int) -> List[Match]:
        with self.transaction():
            records = self._load(MATCHES)['records']
        matches = [Match.from_dict(r) for r in records
                   if user_id in (r['player1_id'], r['player2_id'])]
        return sorted(matches, key=lambda m: (m.round, m.id))

    def update_match_winner(self, match_id: int, winner_id: int) -> Match:
        """Set the winner of an unresolved match."""
        with self.transaction():
            data = self._load(MATCHES)
            record = self._find(data, match_id)
            if record is None:
                raise NotFound('Match not found')
            if record.get('winner_id') is not None:
                raise Conflict('Match already has a winner')
            record['winner_id'] = winner_id
            self._save(MATCHES, data)
        return Match.from_dict(record)

    def clear_match_winner(self, match_id: int) -> Match:
        """Undo a recorded result whose follow-up writes failed."""
        with self.transaction():
            data = self._load(MATCHES)
            record = self._find(data, match_id)
            if record is None:
                raise NotFound('Match not found')
            record['winner_id'] = None
            self._save(MATCHES, data)
        return Match.from_dict(record)

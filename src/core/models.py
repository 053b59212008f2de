TOURNAMENT_STATUSES = ('upcoming', 'ongoing', 'completed')


class User:
    def __init__(self, id, first_name, last_name, email, created_at=None):
        self.id = id
        self.first_name = first_name
        self.last_name = last_name
        self.email = email
        self.created_at = created_at

    def to_dict(self):
        return {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'email': self.email,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(data['id'], data['first_name'], data['last_name'], data['email'],
                   created_at=data.get('created_at'))

    def __repr__(self):
        return f"User(id={self.id}, email={self.email})"


class Tournament:
    def __init__(self, id, name, start_date=None, status='upcoming', participant_ids=None,
                 bracket_id=None, created_at=None):
        self.id = id
        self.name = name
        self.start_date = start_date
        self.status = status
        self.participant_ids = list(participant_ids) if participant_ids else []
        self.bracket_id = bracket_id  # None until a bracket is generated
        self.created_at = created_at

    def has_bracket(self):
        return self.bracket_id is not None

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'start_date': self.start_date,
            'status': self.status,
            'participant_ids': list(self.participant_ids),
            'bracket_id': self.bracket_id,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            data['id'],
            data['name'],
            start_date=data.get('start_date'),
            status=data.get('status', 'upcoming'),
            participant_ids=data.get('participant_ids'),
            bracket_id=data.get('bracket_id'),
            created_at=data.get('created_at'),
        )

    def __repr__(self):
        return f"Tournament(id={self.id}, name={self.name}, status={self.status})"


class Bracket:
    def __init__(self, id, tournament_id, match_ids=None, created_at=None):
        self.id = id
        self.tournament_id = tournament_id
        self.match_ids = list(match_ids) if match_ids else []
        self.created_at = created_at

    def to_dict(self):
        return {
            'id': self.id,
            'tournament_id': self.tournament_id,
            'match_ids': list(self.match_ids),
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(data['id'], data['tournament_id'], match_ids=data.get('match_ids'),
                   created_at=data.get('created_at'))

    def __repr__(self):
        return f"Bracket(id={self.id}, tournament_id={self.tournament_id}, matches={len(self.match_ids)})"


class Match:
    def __init__(self, id, bracket_id, round, player1_id, player2_id, winner_id=None, created_at=None):
        self.id = id
        self.bracket_id = bracket_id
        self.round = round
        self.player1_id = player1_id
        self.player2_id = player2_id
        self.winner_id = winner_id
        self.created_at = created_at

    @property
    def players(self):
        return (self.player1_id, self.player2_id)

    def is_resolved(self):
        return self.winner_id is not None

    def to_dict(self):
        return {
            'id': self.id,
            'bracket_id': self.bracket_id,
            'round': self.round,
            'player1_id': self.player1_id,
            'player2_id': self.player2_id,
            'winner_id': self.winner_id,
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data):
        return cls(
            data['id'],
            data['bracket_id'],
            data['round'],
            data['player1_id'],
            data['player2_id'],
            winner_id=data.get('winner_id'),
            created_at=data.get('created_at'),
        )

    def __repr__(self):
        return (f"Match(id={self.id}, round={self.round}, "
                f"players=({self.player1_id}, {self.player2_id}), winner={self.winner_id})")

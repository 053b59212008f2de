"""
Single elimination bracket generation and round advancement.

Participants are paired in registration order: (p0, p1), (p2, p3), ...
When every match of a round has a winner, the winners are paired the same
way, in the order the round's matches were created, to form the next round.
The bracket is finished when a round holds a single resolved match.
"""
import logging
import math
from typing import Dict, List, Optional, Sequence, Tuple

from .errors import AlreadyExists, BracketIntegrityError, Conflict, InvalidArgument, NotFound
from .models import Bracket, Match, Tournament

logger = logging.getLogger(__name__)


def get_round_name(teams_in_round: int) -> str:
    """Get the name of a round based on number of teams."""
    if teams_in_round == 2:
        return "Final"
    elif teams_in_round == 4:
        return "Semifinal"
    elif teams_in_round == 8:
        return "Quarterfinal"
    else:
        return f"Round of {teams_in_round}"


def is_power_of_two(n: int) -> bool:
    return n > 0 and (n & (n - 1)) == 0


def total_rounds(num_participants: int) -> int:
    """Number of rounds needed to reduce a power-of-2 field to one champion."""
    if num_participants < 2:
        return 0
    return int(math.log2(num_participants))


def pair_adjacent(ids: Sequence[int]) -> List[Tuple[int, int]]:
    """
    Pair consecutive entries: [a, b, c, d] -> [(a, b), (c, d)].

    Raises BracketIntegrityError on an odd count instead of dropping the
    last entry.
    """
    if len(ids) % 2 != 0:
        raise BracketIntegrityError(f'Cannot pair an odd number of entries ({len(ids)})')
    return [(ids[i], ids[i + 1]) for i in range(0, len(ids), 2)]


# ----------------------------------------------------------------------
# Validator
# ----------------------------------------------------------------------

def validate_for_bracket_creation(tournament: Optional[Tournament], participant_ids: Sequence[int]):
    """Check that a bracket may be built for this tournament and field."""
    if tournament is None:
        raise NotFound('Tournament not found')
    if tournament.has_bracket():
        raise AlreadyExists('Bracket already exists for this tournament')
    count = len(participant_ids)
    if count < 2:
        raise InvalidArgument('Tournament must have at least 2 participants')
    if not is_power_of_two(count):
        raise InvalidArgument('Number of participants must be a power of 2 (2, 4, 8, 16, etc.)')


# ----------------------------------------------------------------------
# Bracket Builder
# ----------------------------------------------------------------------

def build_bracket(store, tournament_id: int, participant_ids: Sequence[int]) -> Bracket:
    """
    Create the bracket and its round 1 matches.

    participant_ids must already be validated. If the matches cannot be
    saved, the bracket is deleted again before the error propagates.
    """
    with store.transaction():
        bracket = store.save_bracket(Bracket(None, tournament_id))
        matches = [
            Match(None, bracket.id, 1, player1, player2)
            for player1, player2 in pair_adjacent(participant_ids)
        ]
        try:
            store.save_matches(matches)
        except Exception:
            logger.warning(f'Rolling back bracket {bracket.id} for tournament {tournament_id}')
            store.delete_bracket(bracket.id)
            raise
        bracket.match_ids = [m.id for m in matches]

    logger.info(f'Built bracket {bracket.id} for tournament {tournament_id}: '
                f'{len(participant_ids)} participants, {len(matches)} first round matches')
    return bracket


# ----------------------------------------------------------------------
# Round Advancer
# ----------------------------------------------------------------------

def maybe_advance_round(store, bracket: Bracket, completed_round: int) -> List[Match]:
    """
    Create the next round once every match of completed_round has a winner.

    Returns the new matches, or an empty list when the round is still open
    or when it was the final.
    """
    round_matches = store.get_matches_by_bracket_and_round(bracket.id, completed_round)
    if not round_matches or any(not m.is_resolved() for m in round_matches):
        return []

    winners = [m.winner_id for m in round_matches]
    if len(winners) <= 1:
        logger.info(f'Bracket {bracket.id} complete, champion is {winners[0]}')
        return []

    next_round = completed_round + 1
    new_matches = [
        Match(None, bracket.id, next_round, player1, player2)
        for player1, player2 in pair_adjacent(winners)
    ]
    store.save_matches(new_matches)
    bracket.match_ids.extend(m.id for m in new_matches)

    logger.info(f'Bracket {bracket.id} advanced to round {next_round} with {len(new_matches)} matches')
    return new_matches


# ----------------------------------------------------------------------
# Match Recorder
# ----------------------------------------------------------------------

def record_result(store, match_id: int, winner_id: int) -> Match:
    """Set the winner of a match and advance the bracket if its round is done."""
    with store.transaction():
        match = store.get_match(match_id)
        if match is None:
            raise NotFound('Match not found')
        if match.is_resolved():
            raise Conflict('Match already has a winner')
        if winner_id not in match.players:
            raise InvalidArgument('Winner must be one of the match players')

        match = store.update_match_winner(match_id, winner_id)

        try:
            bracket = store.get_bracket(match.bracket_id)
            if bracket is None:
                raise BracketIntegrityError(f'Match {match_id} belongs to a missing bracket')
            maybe_advance_round(store, bracket, match.round)
        except Exception:
            logger.warning(f'Rolling back result of match {match_id}')
            store.clear_match_winner(match_id)
            raise

    return match


# ----------------------------------------------------------------------
# Operations used by the API
# ----------------------------------------------------------------------

def generate_bracket(store, tournament_id: int) -> Bracket:
    """Validate the tournament and build its bracket in one transaction."""
    with store.transaction():
        tournament = store.get_tournament(tournament_id)
        participant_ids = store.get_participants(tournament_id) if tournament else []
        validate_for_bracket_creation(tournament, participant_ids)
        return build_bracket(store, tournament_id, participant_ids)


def play_match(store, match_id: int, winner_id: int) -> Match:
    return record_result(store, match_id, winner_id)


# ----------------------------------------------------------------------
# Bracket views
# ----------------------------------------------------------------------

def get_champion(matches: List[Match]) -> Optional[int]:
    """Winner of the sole match of the last round, if it has been played."""
    if not matches:
        return None
    last_round = max(m.round for m in matches)
    final_matches = [m for m in matches if m.round == last_round]
    if len(final_matches) == 1 and final_matches[0].is_resolved():
        return final_matches[0].winner_id
    return None


def get_bracket_display(store, tournament_id: int) -> Dict:
    """
    Get bracket data formatted for display.

    Returns dict with:
    - 'bracket': the bracket record
    - 'rounds': list of {'round', 'name', 'matches'} in round order,
      including rounds not yet created (empty match lists)
    - 'total_rounds', 'current_round', 'champion'
    """
    tournament = store.get_tournament(tournament_id)
    if tournament is None:
        raise NotFound('Tournament not found')
    bracket = store.get_bracket_for_tournament(tournament_id)
    if bracket is None:
        raise NotFound('Bracket not found for this tournament')

    matches = store.get_matches_by_bracket(bracket.id)
    first_round = [m for m in matches if m.round == 1]
    num_rounds = total_rounds(len(first_round) * 2)

    rounds = []
    teams_in_round = len(first_round) * 2
    for round_number in range(1, num_rounds + 1):
        rounds.append({
            'round': round_number,
            'name': get_round_name(teams_in_round),
            'matches': [m for m in matches if m.round == round_number],
        })
        teams_in_round //= 2

    current_round = max((m.round for m in matches), default=0)

    return {
        'bracket': bracket,
        'rounds': rounds,
        'total_rounds': num_rounds,
        'current_round': current_round,
        'champion': get_champion(matches),
    }

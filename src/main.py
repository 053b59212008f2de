# Command line entry point: print a tournament bracket from the data directory

import argparse
import logging
import os
import sys
from core.elimination import get_bracket_display
from core.errors import TournamentError
from core.storage import TournamentStore


def format_bracket(store, tournament_id):
    display = get_bracket_display(store, tournament_id)
    tournament = store.get_tournament(tournament_id)
    names = {u.id: f"{u.first_name} {u.last_name}" for u in store.list_users()}

    lines = [f"Tournament: {tournament.name} ({tournament.status})"]
    for round_data in display['rounds']:
        lines.append("")
        lines.append(f"# Round {round_data['round']} - {round_data['name']}")
        if not round_data['matches']:
            lines.append("  (waiting for previous round)")
        for match in round_data['matches']:
            player1 = names.get(match.player1_id, f"#{match.player1_id}")
            player2 = names.get(match.player2_id, f"#{match.player2_id}")
            winner = names.get(match.winner_id, f"#{match.winner_id}") if match.is_resolved() else "-"
            lines.append(f"  M{match.id}: {player1} vs {player2}  winner: {winner}")

    if display['champion'] is not None:
        champion = display['champion']
        lines.append("")
        lines.append(f"Champion: {names.get(champion, f'#{champion}')}")
    return "\n".join(lines)


def main(argv=None):
    script_dir = os.path.dirname(__file__)
    base_dir = os.path.dirname(script_dir)

    parser = argparse.ArgumentParser(description='Show a single elimination bracket')
    parser.add_argument('--data-dir',
                        default=os.environ.get('TOURNAMENT_DATA_DIR', os.path.join(base_dir, 'data')),
                        help='Directory holding the YAML data files')
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)
    show = subparsers.add_parser('show', help='Print the bracket of a tournament')
    show.add_argument('tournament_id', type=int)
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')

    store = TournamentStore(args.data_dir)
    try:
        print(format_bracket(store, args.tournament_id))
    except TournamentError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())

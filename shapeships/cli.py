"""
Shapeships CLI - Command-line interface for the turn server.

Usage:
    shapeships serve [--host H] [--port P]     Run the HTTP API with uvicorn
    shapeships phases                          Print the phase table
    shapeships roll [--count N]                Roll server-grade d6s
    shapeships demo [--turns N]                Play two in-process clients against each other
"""

import argparse
import asyncio
import logging
import os
import sys

logger = logging.getLogger(__name__)

# Environment configuration
SHAPESHIPS_LOG_LEVEL = os.getenv("SHAPESHIPS_LOG_LEVEL", "INFO")
SHAPESHIPS_HOST = os.getenv("SHAPESHIPS_HOST", "127.0.0.1")
SHAPESHIPS_PORT = int(os.getenv("SHAPESHIPS_PORT", "8000"))


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Shapeships - Simultaneous-turn game server",
        prog="shapeships",
    )
    parser.add_argument("--log-level", default=SHAPESHIPS_LOG_LEVEL, help="Logging level")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", default=SHAPESHIPS_HOST)
    serve_parser.add_argument("--port", type=int, default=SHAPESHIPS_PORT)

    # Phases command
    subparsers.add_parser("phases", help="Print the phase table")

    # Roll command
    roll_parser = subparsers.add_parser("roll", help="Roll d6s")
    roll_parser.add_argument("--count", "-n", type=int, default=1, help="Number of dice")

    # Demo command
    demo_parser = subparsers.add_parser("demo", help="Play a short in-process game")
    demo_parser.add_argument("--turns", type=int, default=3, help="Turn limit")
    demo_parser.add_argument("--species", nargs=2, default=["human", "xenite"], metavar=("P1", "P2"))

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.command == "serve":
        cmd_serve(args)
    elif args.command == "phases":
        cmd_phases(args)
    elif args.command == "roll":
        cmd_roll(args)
    elif args.command == "demo":
        cmd_demo(args)
    else:
        parser.print_help()
        sys.exit(1)


def cmd_serve(args):
    """Run the HTTP API."""
    import uvicorn

    logger.info(f"Serving on {args.host}:{args.port}")
    uvicorn.run("shapeships.api.app:app", host=args.host, port=args.port, log_level=args.log_level.lower())


def cmd_phases(args):
    """Print every phase key with its display labels."""
    from .engine_core.phase import PHASE_SEQUENCE, major_phase_label, sub_phase_label

    for index, key in enumerate(PHASE_SEQUENCE):
        print(f"{index:2d}  {key:40s} {major_phase_label(key)} / {sub_phase_label(key)}")


def cmd_roll(args):
    from .engine_core.dice import roll_dice

    if args.count < 1:
        print("Error: --count must be at least 1")
        sys.exit(1)
    print(" ".join(str(value) for value in roll_dice(args.count)))


def cmd_demo(args):
    """Play two in-process clients for a few turns."""
    state = asyncio.run(run_demo(args.turns, tuple(args.species)))
    print(f"\nFinal phase: {state.phase_key}  status: {state.status}  winner: {state.winner}")


async def run_demo(max_turns: int, species: tuple):
    """
    Two ClientSessions over LocalIntentChannel, each building the cheapest
    ship it can afford every turn. Returns the final snapshot.
    """
    from .api.models import CreateGameRequest, JoinGameRequest
    from .api.service import GameService
    from .engine_core.ships import ships_for_species
    from .session import ClientSession, LocalIntentChannel

    service = GameService()
    first = service.create_game(CreateGameRequest(player_name="Alpha", max_turns=max_turns))
    second = service.join_game(first.game_id, JoinGameRequest(player_name="Beta"))

    sessions = [
        ClientSession(LocalIntentChannel(service, first.game_id, seat.session_id), first.game_id, seat.session_id)
        for seat in (first, second)
    ]
    for session in sessions:
        await session.refresh()

    for session, choice in zip(sessions, species):
        await session.submit_species(choice)

    while not sessions[0].snapshot.is_finished:
        for session in sessions:
            await session.refresh()
            me = session.identity.me
            affordable = sorted(
                (ship for ship in ships_for_species(me["faction"])
                 if ship.line_cost is not None and ship.line_cost <= me["lines"]),
                key=lambda ship: ship.line_cost,
            )
            if affordable:
                await session.commit_build({affordable[0].ship_def_id: 1})

        for session in sessions:
            await session.declare_ready()
        for session in sessions:
            await session.refresh()

        view = sessions[0].view()
        print(
            f"Turn {view.turn_number}: {view.major_label} / {view.sub_label}  "
            f"dice={view.dice_roll}  my fleet={view.fleets.my_fleet}  "
            f"opponent fleet={view.fleets.opponent_fleet}"
        )

    return sessions[0].snapshot


if __name__ == "__main__":
    main()

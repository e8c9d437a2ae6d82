"""Live projector board in the terminal.

Subscribes to /api/car-updates and re-pulls /api/projector whenever a car
enters or leaves a projector stage. The update payload is never displayed
directly; the board always shows what the API returns.

Usage:
    python scripts/watch_board.py [--api http://localhost:8000] [--ws ws://localhost:8000/api/car-updates]
"""

import argparse
import asyncio

from car_tracker.client.api_client import CarTrackerClient
from car_tracker.client.observer_channel import CarUpdatesChannel
from car_tracker.client.reconciliation import ReconciledView
from car_tracker.core.config import get_settings
from car_tracker.core.logging import configure_structlog
from car_tracker.domain.stages import PROJECTOR_DONE, PROJECTOR_IN_PROGRESS
from car_tracker.schemas.cars import ProjectorResponse


def render(board: ProjectorResponse) -> None:
    print("\033[2J\033[H", end="")
    print(f"IN PROGRESS ({len(board.in_progress_cars)})")
    for car in board.in_progress_cars:
        print(f"  #{car.id:<5} {car.color:<8} {car.make} {car.model}  [{car.status.value}]")
    print(f"\nREADY FOR PICKUP ({len(board.done_cars)})")
    for car in board.done_cars:
        print(f"  #{car.id:<5} {car.color:<8} {car.make} {car.model}")


async def main(args: argparse.Namespace) -> None:
    settings = get_settings()
    channel = CarUpdatesChannel(
        args.ws,
        reconnect_delay=settings.reconnect_delay_seconds,
        disconnect_grace=settings.disconnect_grace_seconds,
    )

    async with CarTrackerClient(args.api) as client:
        view = ReconciledView(client.get_projector, on_change=render)
        view.attach(channel, status_filter=[*PROJECTOR_IN_PROGRESS, *PROJECTOR_DONE])
        channel.start()
        try:
            while True:
                await asyncio.sleep(1.0)
                if channel.should_show_disconnected_indicator():
                    print(f"\r[{channel.connection_status}] live updates unavailable", end="", flush=True)
        finally:
            view.detach()
            await channel.close()


def parse_args() -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Watch the projector board live")
    parser.add_argument("--api", default=settings.api_base_url)
    parser.add_argument("--ws", default=settings.updates_url)
    return parser.parse_args()


if __name__ == "__main__":
    configure_structlog(log_level="WARNING", json_logs=False)
    try:
        asyncio.run(main(parse_args()))
    except KeyboardInterrupt:
        pass

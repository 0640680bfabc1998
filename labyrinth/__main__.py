"""Labyrinth CLI entry point."""

import argparse
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

env_file = Path.cwd() / ".env"
load_dotenv(env_file)

from labyrinth import __version__
from labyrinth.config import get_settings
from labyrinth.leaderboard.snapshot import build_snapshot, format_seconds, format_time
from labyrinth.services.serial import list_serial_ports, matches_signature
from labyrinth.storage.leaderboard import initialize_store, load_records

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

CONFIG_TEMPLATE = """# Labyrinth Configuration
# Operational parameters for the maze host. Secrets such as the Logfire
# token belong in .env, not here.

serial:
  # port: /dev/ttyUSB0   # set to skip auto-detection
  baud_rate: 9600
  write_timeout_seconds: 1.0

leaderboard:
  file_name: leaderboard.yaml
  top_n: 10

session:
  tick_interval_seconds: 0.1
  # run_timeout_seconds: 300   # concede unfinished runs automatically

device:
  fall_threshold_cm: 5.0
  x_min_angle: 60
  x_max_angle: 120
  y_min_angle: 60
  y_max_angle: 120

api:
  host: 127.0.0.1
  port: 8000
"""


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize data directory, configuration and an empty leaderboard."""
    try:
        settings = get_settings()
        data_dir = settings.data_dir
        data_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created data directory: {data_dir}")

        config_path = data_dir / "config.yaml"
        if not config_path.exists():
            config_path.write_text(CONFIG_TEMPLATE, encoding="utf-8")
            logger.info(f"Created config template: {config_path}")
        else:
            logger.info(f"Config file already exists: {config_path}")

        initialize_store(settings.leaderboard_path)

        print(f"\n✓ Data directory initialized at {data_dir}")
        print("\nNext steps:")
        print("1. Review data/config.yaml (serial port, servo ranges)")
        print("2. Run 'python -m labyrinth ports' to check the maze controller is visible")
        print("3. Run 'python -m labyrinth run' to start the host\n")
        return 0

    except Exception as e:
        logger.error(f"Failed to initialize: {e}")
        print(f"\n❌ Initialization failed: {e}\n")
        return 1


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration."""
    try:
        settings = get_settings()

        print("\n=== Labyrinth Configuration ===\n")
        print(f"Data Directory: {settings.data_dir}")
        print(f"Leaderboard File: {settings.leaderboard_path}\n")

        print("Serial:")
        print(f"  Port: {settings.serial.port or 'auto-detect'}")
        print(f"  Baud Rate: {settings.serial.baud_rate}")
        print(f"  Write Timeout: {settings.serial.write_timeout_seconds}s")
        signatures = ", ".join(
            s.manufacturer or f"VID {s.vid:#06x}"
            for s in settings.serial.device_signatures
            if s.manufacturer or s.vid is not None
        )
        print(f"  Device Signatures: {signatures}\n")

        print("Leaderboard:")
        print(f"  Top N: {settings.leaderboard.top_n}\n")

        print("Session:")
        print(f"  Tick Interval: {settings.session.tick_interval_seconds}s")
        timeout = settings.session.run_timeout_seconds
        print(f"  Run Timeout: {f'{timeout}s' if timeout is not None else 'disabled'}\n")

        print("Device:")
        print(f"  Fall Threshold: {settings.device.fall_threshold_cm}cm")
        print(f"  X Range: {settings.device.x_min_angle}-{settings.device.x_max_angle}°")
        print(f"  Y Range: {settings.device.y_min_angle}-{settings.device.y_max_angle}°\n")

        print("API:")
        print(f"  Listen: {settings.api.host}:{settings.api.port}\n")

        print(f"Logfire: {'✓ Set' if settings.logfire_token else '✗ Not set'}\n")
        return 0

    except ValidationError as e:
        print("\n❌ Configuration Error:\n")
        for error in e.errors():
            print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
        print()
        return 1
    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        print(f"\n❌ Failed to load configuration: {e}\n")
        return 1


def cmd_leaderboard(args: argparse.Namespace) -> int:
    """Display the ranked leaderboard and statistics."""
    try:
        settings = get_settings()
        records = load_records(settings.leaderboard_path)
        snapshot = build_snapshot(records, args.top or settings.leaderboard.top_n)

        print("\n=== Labyrinth Leaderboard ===\n")
        if not snapshot.entries:
            print("  (No successful runs yet)")
        for entry in snapshot.entries:
            marker = " ★" if entry.improved_on_last_update else ""
            print(
                f"  {entry.rank:>2}. {entry.display_name:<20} "
                f"{format_time(entry.best_time_millis)}  ({entry.player_id}){marker}"
            )

        stats = snapshot.stats
        print("\nStatistics:")
        print(f"  Record: {format_seconds(stats.record_time_millis)}s")
        print(f"  Average: {format_seconds(stats.average_time_millis)}s")
        print(f"  Total Players: {stats.total_players}")
        print(f"  Success Rate: {stats.success_rate:.0f}%\n")
        return 0

    except Exception as e:
        logger.error(f"Failed to read leaderboard: {e}")
        print(f"\n❌ Failed to read leaderboard: {e}\n")
        return 1


def cmd_ports(args: argparse.Namespace) -> int:
    """List serial ports and mark the ones that look like the maze controller."""
    try:
        settings = get_settings()
        ports = list_serial_ports()

        print("\n=== Serial Ports ===\n")
        if not ports:
            print("  (None found)\n")
            return 0

        for port in ports:
            match = matches_signature(port, settings.serial.device_signatures)
            vid = f"{port.vid:#06x}" if port.vid is not None else "----"
            print(
                f"  {'✓' if match else ' '} {port.device:<16} {vid}  "
                f"{port.manufacturer or ''} {port.description}".rstrip()
            )
        print()
        return 0

    except Exception as e:
        logger.error(f"Failed to list serial ports: {e}")
        print(f"\n❌ Failed to list serial ports: {e}\n")
        return 1


def cmd_run(args: argparse.Namespace) -> int:
    """Start the host: serial transport, session relay and dashboard API."""
    try:
        import uvicorn

        from labyrinth.api.server import create_app
        from labyrinth.app import HostRuntime
        from labyrinth.observability import initialize_logfire

        if args.debug:
            logging.getLogger().setLevel(logging.DEBUG)

        settings = get_settings()
        if args.port:
            settings.serial = settings.serial.model_copy(update={"port": args.port})

        runtime = HostRuntime(settings)
        app = create_app(runtime)
        initialize_logfire(settings, app)

        print("\n=== Labyrinth Host ===\n")
        print(f"Version: {__version__}")
        print(f"Serial Port: {settings.serial.port or 'auto-detect'}")
        print(f"Leaderboard: {settings.leaderboard_path}")
        print(f"Dashboard API: http://{settings.api.host}:{settings.api.port}\n")

        uvicorn.run(
            app,
            host=settings.api.host,
            port=settings.api.port,
            log_level="debug" if args.debug else "info",
        )
        return 0

    except KeyboardInterrupt:
        print("\n\nReceived interrupt signal. Shutting down...\n")
        return 0
    except Exception as e:
        logger.error(f"Failed to start host: {e}", exc_info=True)
        print(f"\nFailed to start: {e}\n")
        return 1


def cmd_simulate(args: argparse.Namespace) -> int:
    """Run the simulated maze controller on a serial port."""
    try:
        from labyrinth.device.simulator import run_simulator

        if args.debug:
            logging.getLogger().setLevel(logging.DEBUG)

        settings = get_settings()
        print(f"\nSimulating maze controller on {args.port} (Ctrl+C to stop)...\n")
        run_simulator(args.port, settings.device, settings.serial)
        return 0

    except KeyboardInterrupt:
        print("\n\nSimulator stopped.\n")
        return 0
    except Exception as e:
        logger.error(f"Simulator failed: {e}", exc_info=True)
        print(f"\n❌ Simulator failed: {e}\n")
        return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Labyrinth: tilt-maze host controller and leaderboard",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Labyrinth {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_init = subparsers.add_parser(
        "init",
        help="Initialize data directory, configuration and leaderboard",
    )
    parser_init.set_defaults(func=cmd_init)

    parser_config = subparsers.add_parser(
        "config",
        help="Display merged configuration",
    )
    parser_config.set_defaults(func=cmd_config)

    parser_leaderboard = subparsers.add_parser(
        "leaderboard",
        help="Display the ranked leaderboard and statistics",
    )
    parser_leaderboard.add_argument(
        "--top",
        type=int,
        default=None,
        help="Number of ranked players to show",
    )
    parser_leaderboard.set_defaults(func=cmd_leaderboard)

    parser_ports = subparsers.add_parser(
        "ports",
        help="List serial ports and mark maze controller candidates",
    )
    parser_ports.set_defaults(func=cmd_ports)

    parser_run = subparsers.add_parser(
        "run",
        help="Start the host and dashboard API",
    )
    parser_run.add_argument(
        "--port",
        default=None,
        help="Serial port of the maze controller (skips auto-detection)",
    )
    parser_run.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser_run.set_defaults(func=cmd_run)

    parser_simulate = subparsers.add_parser(
        "simulate",
        help="Run a simulated maze controller on a serial port",
    )
    parser_simulate.add_argument(
        "--port",
        required=True,
        help="Serial port to attach the simulated device to",
    )
    parser_simulate.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser_simulate.set_defaults(func=cmd_simulate)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

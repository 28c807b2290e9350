import argparse
import os
import subprocess
import sys
import time
import webbrowser
from pathlib import Path

from flashdeck.config import DATA_DIR_ENV


def find_python() -> str:
    venv_path = Path(".venv")
    if sys.platform == "win32":
        python_executable = venv_path / "Scripts" / "python.exe"
    else:
        python_executable = venv_path / "bin" / "python"

    if not python_executable.exists():
        print(f"Virtual environment not found at {python_executable}, using {sys.executable}")
        return sys.executable
    return str(python_executable)


def server_command(python: str, host: str, port: int, reload: bool = False) -> list:
    cmd = [python, "-m", "uvicorn", "flashdeck.main:app", "--host", host, "--port", str(port)]
    if reload:
        cmd.append("--reload")
    return cmd


def server_env(data_dir=None) -> dict:
    env = dict(os.environ)
    if data_dir:
        env[DATA_DIR_ENV] = str(Path(data_dir).resolve())
    return env


def serve(args):
    cmd = server_command(find_python(), args.host, args.port, reload=args.reload)
    print(f"Running backend: {' '.join(cmd)}")
    process = None
    try:
        process = subprocess.Popen(cmd, env=server_env(args.data_dir))

        # Wait a moment for server to start
        time.sleep(2)
        if not args.no_browser:
            webbrowser.open(f"http://{args.host}:{args.port}/docs")

        print("Flashcard API is running. Press Ctrl+C to stop.")
        return process.wait()
    except KeyboardInterrupt:
        print("\nStopping...")
        if process is not None:
            process.terminate()
        return 0
    except OSError as e:
        print(f"Error: {e}")
        if process is not None:
            process.terminate()
        return 1


def show_stats(args):
    """Print per-deck counts straight from the data files, no server needed."""
    if args.data_dir:
        os.environ[DATA_DIR_ENV] = str(args.data_dir)
    from flashdeck.main import make_service

    service = make_service()
    stats = service.get_stats()
    for deck in stats["decks"]:
        print(f"{deck.deck:<24} total {deck.total:>5}  due {deck.due_today:>5}  "
              f"new {deck.new:>5}  mastered {deck.mastered:>5}")
    totals = stats["totals"]
    print(f"{'all decks':<24} total {totals.total:>5}  due {totals.due_today:>5}  "
          f"new {totals.new:>5}  mastered {totals.mastered:>5}")
    print(f"Reviewable now: {service.reviewable_count()}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="start.py", description="Flashcard review launcher")
    parser.add_argument("--data-dir", help=f"Data directory (default: ${DATA_DIR_ENV} or ./data)")
    subparsers = parser.add_subparsers(dest="command")

    p_serve = subparsers.add_parser("serve", help="Run the API and open its docs (default)")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=int(os.getenv("FLASHDECK_PORT", "8000")))
    p_serve.add_argument("--reload", action="store_true", help="Restart on code changes")
    p_serve.add_argument("--no-browser", action="store_true")

    subparsers.add_parser("stats", help="Print deck statistics and exit")
    return parser


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        args = parser.parse_args(list(argv) + ["serve"])
    if args.command == "stats":
        return show_stats(args)
    return serve(args)


if __name__ == "__main__":
    sys.exit(main())

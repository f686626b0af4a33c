"""
One-command launcher for the market dashboard API.

Prunes expired cache entries, reports today's API usage, then starts the
FastAPI backend under uvicorn and waits for it to become healthy.

Usage:
    python -m marketdash.bootstrap.run_server
    python -m marketdash.bootstrap.run_server --port 9000 --clear_cache
    python -m marketdash.bootstrap.run_server --skip_maintenance
"""

import argparse
import asyncio
import os
import signal
import subprocess
import sys
import time
import urllib.error
import urllib.request
from pathlib import Path

from marketdash.cache.service import ResponseCache
from marketdash.cache.usage import UsageTracker
from marketdash.config import get_settings
from marketdash.storage.sqlite import SQLiteStore


def parse_args(argv=None):
    """Parse command-line arguments (defaults come from Settings)."""
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Market Dashboard - API launcher",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m marketdash.bootstrap.run_server
  python -m marketdash.bootstrap.run_server --db data/cache.db --port 9000
  python -m marketdash.bootstrap.run_server --clear_cache
        """
    )

    parser.add_argument(
        "--db",
        default=settings.sqlite_path,
        help=f"SQLite cache path (default: {settings.sqlite_path})"
    )
    parser.add_argument(
        "--host",
        default=settings.host,
        help=f"Bind address (default: {settings.host})"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help=f"API port (default: {settings.port})"
    )
    parser.add_argument(
        "--clear_cache",
        action="store_true",
        help="Drop every cached response before starting"
    )
    parser.add_argument(
        "--skip_maintenance",
        action="store_true",
        help="Skip cache pruning and the usage report"
    )

    return parser.parse_args(argv)


async def prepare_cache(args, daily_budget: int | None = None) -> dict:
    """
    Prune the response cache and summarize today's API usage.

    Returns:
        dict with "cleared" (entries removed) and "daily_requests"
    """
    if args.skip_maintenance:
        print("⏩ Skipping cache maintenance (--skip_maintenance)")
        return {"cleared": 0, "daily_requests": None}

    store = SQLiteStore(args.db)
    await store.init()

    usage = UsageTracker(store, daily_budget=daily_budget or get_settings().daily_request_budget)
    cache = ResponseCache(store, usage)

    if args.clear_cache:
        cleared = await cache.clear()
        print(f"🧹 Cleared {cleared} cached response(s)")
    else:
        cleared = await cache.evict_old()
        print(f"🧹 Pruned {cleared} expired cache entr{'y' if cleared == 1 else 'ies'}")

    stats = await usage.get_stats()
    print(f"📊 API usage today: {stats.daily_requests}/{usage.daily_budget} requests")
    if stats.daily_requests >= usage.warning_threshold:
        print("   ⚠️  Approaching the daily request budget; cached data will be preferred")

    return {"cleared": cleared, "daily_requests": stats.daily_requests}


def start_backend(host: str, port: int, db_path: str):
    """
    Start the FastAPI backend as a subprocess.

    Returns:
        subprocess.Popen: Backend process
    """
    print(f"\n🚀 Starting backend API on {host}:{port}...")

    env = os.environ.copy()
    env["SQLITE_PATH"] = db_path

    cmd = [
        sys.executable,
        "-m",
        "uvicorn",
        "marketdash.main:app",
        "--host",
        host,
        "--port",
        str(port),
    ]

    kwargs = {
        "env": env,
        "cwd": str(Path(__file__).parent.parent.parent),
    }

    if sys.platform == "win32":
        kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP

    process = subprocess.Popen(cmd, **kwargs)

    print(f"   PID: {process.pid}")
    return process


def wait_for_backend(port: int, max_retries: int = 20, delay: float = 1.0) -> bool:
    """
    Poll /health until the backend answers.

    Returns:
        bool: True if backend is ready, False if timeout
    """
    print("\n⏳ Waiting for backend to be ready...")

    for i in range(max_retries):
        try:
            response = urllib.request.urlopen(f"http://localhost:{port}/health", timeout=2)
            if response.status == 200:
                print(f"✓ Backend ready after {i + 1} attempts")
                return True
        except (urllib.error.URLError, OSError):
            pass

        if i < max_retries - 1:
            time.sleep(delay)

    print(f"✗ Backend not ready after {max_retries} attempts")
    return False


def stop_backend(backend_process):
    """Terminate the backend cleanly."""
    print("\n\n🛑 Shutting down...")

    if backend_process and backend_process.poll() is None:
        try:
            if sys.platform == "win32":
                backend_process.send_signal(signal.CTRL_BREAK_EVENT)
            else:
                backend_process.terminate()
            backend_process.wait(timeout=5)
        except (subprocess.TimeoutExpired, OSError) as e:
            print(f"   Force killing backend: {e}")
            backend_process.kill()

    print("✓ Shutdown complete")


def main(argv=None):
    """Launcher entry point."""
    args = parse_args(argv)

    print("=" * 60)
    print("📈 MARKET DASHBOARD API")
    print("=" * 60)
    print()

    backend_process = None

    try:
        asyncio.run(prepare_cache(args))

        backend_process = start_backend(args.host, args.port, args.db)

        if not wait_for_backend(args.port):
            print("\n✗ Backend failed to start. Check logs above.")
            return 1

        print("\n" + "=" * 60)
        print("✅ MARKET DASHBOARD API IS RUNNING")
        print("=" * 60)
        print(f"\n🔗 API:     http://localhost:{args.port}")
        print(f"🔗 Docs:    http://localhost:{args.port}/docs")
        print("\n⌨️  Press CTRL+C to stop")
        print("=" * 60)
        print()

        while True:
            time.sleep(1)
            if backend_process.poll() is not None:
                print("\n✗ Backend process died unexpectedly")
                return 1

    except KeyboardInterrupt:
        print("\n\n⌨️  Received Ctrl+C")

    finally:
        stop_backend(backend_process)

    return 0


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""Goal Achiever CLI - API server, health check and tutor chat."""

import asyncio
import argparse
import logging
import os
import sys
from typing import Optional

from config import get_settings


def setup_logging(level: Optional[str] = None):
    """Configure logging."""
    settings = get_settings()
    level = level or settings.log_level
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=settings.log_format,
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def run_server(host: str, port: int, reload: bool = False):
    """Start the API server."""
    import uvicorn

    print(f"\nStarting Goal Achiever API server on {host}:{port}")
    print(f"API docs: http://{host}:{port}/docs\n")

    uvicorn.run(
        "api.main:app",
        host=host,
        port=port,
        reload=reload
    )


async def run_health(base_url: Optional[str] = None) -> int:
    """Check a running server; returns the process exit code."""
    from client import ApiError, GoalAchieverClient

    async with GoalAchieverClient(base_url=base_url) as app:
        try:
            health = await app.health()
        except ApiError as e:
            print(f"Server unhealthy: {e.message}")
            return 1

    print(f"Status: {health.get('status')}")
    print(f"Environment: {health.get('environment')}")
    print(f"AI mode: {health.get('ai_mode')}")
    return 0


async def run_chat(token: str, base_url: Optional[str] = None):
    """Interactive AI tutor chat against a running server."""
    from client import ApiError, GoalAchieverClient

    print(f"\n{'='*50}")
    print("           Goal Achiever AI Tutor")
    print(f"{'='*50}")
    print("\nCommands: 'new' to start a new session, 'quit' to exit\n")

    async with GoalAchieverClient(base_url=base_url, token=token) as app:
        try:
            profile = await app.auth.sign_in(token)
        except ApiError as e:
            print(f"Sign-in failed: {e.message}")
            return

        print(f"Signed in as {profile.get('email') or profile.get('id')}\n")

        while True:
            try:
                user_input = input("You: ").strip()

                if not user_input:
                    continue

                if user_input.lower() in ["quit", "exit"]:
                    print("\nGoodbye!")
                    break

                if user_input.lower() == "new":
                    app.tutor.start_new_session()
                    print("\n[New session]\n")
                    continue

                reply = await app.tutor.send_message(user_input)
                print(f"\nTutor: {reply['response']}\n")

            except KeyboardInterrupt:
                print("\n\nInterrupted. Goodbye!")
                break
            except ApiError as e:
                print(f"\nError: {e.message}\n")
                if not app.auth.state.is_authenticated:
                    break


def main():
    """Main CLI entry point."""
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="Goal Achiever - goals, check-ins and an AI tutor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start the API server
  python main.py serve --port 5000

  # Check a running server
  python main.py health --url http://localhost:5000/api

  # Chat with the tutor (token issued by the auth service)
  GOAL_ACHIEVER_TOKEN=... python main.py chat
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Serve command
    serve_parser = subparsers.add_parser("serve", help="Start the API server")
    serve_parser.add_argument(
        "--host",
        default=settings.host,
        help=f"Host to bind (default: {settings.host})"
    )
    serve_parser.add_argument(
        "--port", "-p",
        type=int,
        default=settings.port,
        help=f"Port to bind (default: {settings.port})"
    )
    serve_parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development"
    )

    # Health command
    health_parser = subparsers.add_parser("health", help="Check a running API server")
    health_parser.add_argument(
        "--url",
        default=None,
        help=f"API base URL (default: {settings.api_base_url})"
    )

    # Chat command
    chat_parser = subparsers.add_parser("chat", help="Interactive AI tutor chat")
    chat_parser.add_argument(
        "--url",
        default=None,
        help=f"API base URL (default: {settings.api_base_url})"
    )
    chat_parser.add_argument(
        "--token",
        default=os.environ.get("GOAL_ACHIEVER_TOKEN"),
        help="Bearer token (default: $GOAL_ACHIEVER_TOKEN)"
    )

    # Parse arguments
    args = parser.parse_args()

    # Setup logging
    setup_logging()

    if args.command == "serve":
        run_server(
            host=args.host,
            port=args.port,
            reload=args.reload
        )

    elif args.command == "health":
        sys.exit(asyncio.run(run_health(args.url)))

    elif args.command == "chat":
        if not args.token:
            parser.error("chat needs --token or GOAL_ACHIEVER_TOKEN")
        asyncio.run(run_chat(token=args.token, base_url=args.url))

    else:
        parser.print_help()


if __name__ == "__main__":
    main()

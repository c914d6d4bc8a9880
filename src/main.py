"""CLI entry point for the clinic inquiry service.

A terminal chat that behaves like the browser widget: it keeps the message
history and the ``faq_flow`` blob locally and sends both on every turn.
For production, use the FastAPI server (src/server.py).

Usage:
    uv run python -m src.main            # normal mode (quiet)
    uv run python -m src.main --debug    # debug mode (scores, flow transitions)
"""

from __future__ import annotations

import argparse
import logging
from typing import Any

from dotenv import load_dotenv

from src.agent import answer_inquiry, create_inquiry_agent
from src.services.store_client import StoreClient

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool = False) -> None:
    """Set up logging: WARNING by default, DEBUG when --debug is passed."""
    root_level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=root_level,
        format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
    )

    if not debug:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    logging.getLogger("src").setLevel(logging.DEBUG if debug else logging.INFO)


def _print_reply(payload: dict[str, Any]) -> None:
    print(f"\nAssistant [{payload['source']}]: {payload['reply']}\n")
    for option in payload.get("reply_options") or []:
        print(f"   ({option['value']}) {option['label']}")
    if payload.get("reply_options"):
        print()


def main():
    """Run the interactive CLI chat loop."""
    parser = argparse.ArgumentParser(description="Clinic inquiry CLI")
    parser.add_argument(
        "--debug", action="store_true",
        help="Show all log messages including retrieval scores",
    )
    args = parser.parse_args()

    load_dotenv()
    _configure_logging(debug=args.debug)

    print("\n" + "=" * 60)
    print("  Clinic Inquiry - CLI Chat")
    print("=" * 60)
    print("  Type your message and press Enter.")
    print("  Commands: 'quit' to exit, 'new' to clear the conversation.")
    print("=" * 60 + "\n")

    store = StoreClient()
    agent = create_inquiry_agent(store)
    history: list[dict[str, str]] = []
    faq_flow: dict[str, Any] | None = None

    while True:
        try:
            user_input = input("You: ").strip()
        except (KeyboardInterrupt, EOFError):
            print("\n\nGoodbye!")
            break

        if not user_input:
            continue

        if user_input.lower() in ("exit", "quit", "q"):
            print("\nGoodbye!")
            break

        if user_input.lower() == "new":
            history, faq_flow = [], None
            print("\n>> Conversation cleared.\n")
            continue

        history.append({"role": "user", "content": user_input})
        try:
            payload = answer_inquiry(agent, history, faq_flow)
        except KeyboardInterrupt:
            print("\n\nGoodbye!")
            break
        except Exception as e:
            logger.exception("Error processing message")
            print(f"\nAssistant: something went wrong: {e}")
            print("     Please try again or type 'new' to start over.\n")
            history.pop()
            continue

        faq_flow = payload["faq_flow"]
        history.append({"role": "assistant", "content": payload["reply"]})
        _print_reply(payload)

    store.close()


if __name__ == "__main__":
    main()

# relaychat_web/client/__main__.py
"""
Minimal terminal chat against a running relay.

Run: python -m relaychat_web.client --url http://localhost:5000
"""
import argparse
import asyncio
import logging
import sys
from typing import Optional, TextIO

from .consumer import ChatClient
from .state import ChatMessage


async def _render_reveal(chat: ChatClient, message: ChatMessage) -> None:
    """Prints a message as the reveal engine uncovers it."""
    printed = 0
    while True:
        text = chat.state.display_content(message)
        sys.stdout.write(text[printed:])
        sys.stdout.flush()
        printed = len(text)
        if not chat.state.is_revealing(message):
            break
        await asyncio.sleep(chat.reveal.interval_s)
    sys.stdout.write("\n\n")


async def _send_with_status(chat: ChatClient, line: str, out: TextIO = sys.stdout, poll_s: float = 0.05) -> None:
    """Sends one message, printing the status label each time it changes while the turn is open."""
    turn = asyncio.create_task(chat.send(line))
    shown: Optional[str] = None
    while not turn.done():
        if chat.state.loading and chat.state.status is not None and chat.state.status != shown:
            shown = chat.state.status
            out.write(f"[{chat.state.status_label()}]\n")
            out.flush()
        await asyncio.wait({turn}, timeout=poll_s)
    await turn


async def _chat_loop(base_url: str) -> None:
    async with ChatClient(base_url) as chat:
        while True:
            try:
                line = await asyncio.to_thread(input, "you> ")
            except EOFError:
                return
            if line.strip() in ("/quit", "/exit"):
                return
            before = len(chat.state.messages)
            await _send_with_status(chat, line)
            for message in chat.state.messages[before:]:
                if message.role == "assistant":
                    sys.stdout.write("assistant> ")
                    await _render_reveal(chat, message)


def main() -> None:
    parser = argparse.ArgumentParser(description="Terminal client for relaychat-web.")
    parser.add_argument("--url", default="http://localhost:5000", help="Base URL of the relay")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING)
    try:
        asyncio.run(_chat_loop(args.url))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()

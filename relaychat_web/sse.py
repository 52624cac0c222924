# relaychat_web/sse.py
"""
Frame codec for the downstream event stream sent to the browser.

A frame is `event: <name>\\ndata: <json>\\n\\n`. Encoding is a single
`json.dumps`; decoding is incremental, so frames split across arbitrary
network reads are reassembled before they are parsed. This codec is only used
between the relay and its clients. The orchestrator's single-line `data:`
framing is handled separately in `relaychat_web.upstream`.
"""
import codecs
import json
import logging
import re
from typing import Any, Iterable, List, Optional, Tuple, Union

logger = logging.getLogger("relaychat_web.sse")

FRAME_SEPARATOR = "\n\n"

_EVENT_LINE_RE = re.compile(r"^event: (\w+)", re.MULTILINE)
_DATA_LINE_RE = re.compile(r"^data: (.+)$", re.MULTILINE)

Frame = Tuple[str, Any]


def encode_frame(event: str, payload: Any) -> str:
    """Serializes one downstream event as a blank-line-terminated frame."""
    return f"event: {event}\ndata: {json.dumps(payload)}{FRAME_SEPARATOR}"


def parse_frame_block(block: str) -> Optional[Frame]:
    """
    Extracts `(event, payload)` from one frame block.

    Returns None when the block lacks an `event:` or `data:` line, or when the
    data is not valid JSON. A bad block is dropped; it never ends the stream.
    """
    event_match = _EVENT_LINE_RE.search(block)
    data_match = _DATA_LINE_RE.search(block)
    if not event_match or not data_match:
        return None
    try:
        return event_match.group(1), json.loads(data_match.group(1))
    except json.JSONDecodeError:
        logger.debug(f"Skipping frame with unparseable data: {data_match.group(1)[:80]!r}")
        return None


class FrameDecoder:
    """
    Incrementally decodes downstream frames from text or byte chunks.

    Usage:
        decoder = FrameDecoder()
        for chunk in chunks:
            for event, payload in decoder.feed(chunk):
                ...
        for event, payload in decoder.flush():
            ...
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def feed(self, chunk: Union[str, bytes]) -> List[Frame]:
        if isinstance(chunk, bytes):
            chunk = self._utf8.decode(chunk)
        self._buffer += chunk
        blocks = self._buffer.split(FRAME_SEPARATOR)
        # The last piece is either empty or a partial frame still arriving.
        self._buffer = blocks.pop()
        return [frame for frame in map(parse_frame_block, blocks) if frame is not None]

    def flush(self) -> List[Frame]:
        """Attempts whatever is left in the buffer as one final block."""
        self._buffer += self._utf8.decode(b"", final=True)
        residual, self._buffer = self._buffer, ""
        if not residual.strip():
            return []
        frame = parse_frame_block(residual)
        return [frame] if frame is not None else []


def decode_frames(chunks: Iterable[Union[str, bytes]]) -> List[Frame]:
    """Decodes a complete sequence of chunks into an ordered list of frames."""
    decoder = FrameDecoder()
    frames: List[Frame] = []
    for chunk in chunks:
        frames.extend(decoder.feed(chunk))
    frames.extend(decoder.flush())
    return frames

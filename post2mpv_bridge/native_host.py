"""Native Messaging host for post2mpv.

Launched by the browser when the extension calls `sendNativeMessage()`.
Each frame read from stdin is forwarded as one HTTP POST to the local post2mpv
server and answered with exactly one frame on stdout, in order.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Sequence
from typing import TextIO

from .config import BridgeConfig
from .framing import EndOfStream, FrameChannel, FrameDecodeError, FrameReadError, FrameWriteError
from .manifest import build_manifest, render_manifest, resolve_executable
from .messages import OutboundMessage
from .translator import RequestTranslator

logger = logging.getLogger("post2mpv.bridge")


def usage(prog: str, out: TextIO) -> None:
    out.write(f"usage: {prog} [--manifest]\n")


def run(channel: FrameChannel, translator: RequestTranslator) -> None:
    """Serve frames until the input closes. FrameWriteError propagates."""
    handled = 0
    while True:
        try:
            msg = channel.read_message()
        except EndOfStream:
            logger.debug("stdin closed after %d frame(s)", handled)
            return
        except (FrameReadError, FrameDecodeError) as exc:
            logger.warning("bad_frame %s", exc)
            channel.write_message(OutboundMessage.error(f"Failed to read message: {exc}"))
            handled += 1
            continue

        if not msg.url:
            channel.write_message(OutboundMessage.error("'url' required"))
            handled += 1
            continue

        channel.write_message(translator.translate(msg))
        handled += 1


def main(argv: Sequence[str] | None = None) -> None:
    argv = list(sys.argv if argv is None else argv)
    prog = argv[0] if argv else "post2mpv-bridge"
    arg = argv[1] if len(argv) == 2 else ""

    if arg == "--manifest":
        manifest = build_manifest(resolve_executable(prog))
        sys.stdout.write(render_manifest(manifest))
        sys.stdout.flush()
        return
    if arg == "--help":
        usage(prog, sys.stdout)
        return

    config = BridgeConfig.from_env()
    # Native messaging requires strict stdout framing. Never write logs to stdout.
    logging.basicConfig(
        level=config.logging_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stderr,
    )
    channel = FrameChannel.stdio(max_frame_bytes=config.max_frame_bytes)
    try:
        run(channel, RequestTranslator(config))
    except FrameWriteError as exc:
        logger.error("stdout closed, exiting: %s", exc)
        raise SystemExit(1) from None
    except KeyboardInterrupt:
        raise SystemExit(0) from None


if __name__ == "__main__":
    main()

"""Command-line entry points.

``recordathon <port> <root>`` serves the web app. ``recordathon-edit`` opens
one stored recording in an :class:`~recordathon.editor.EditSession` for
quick edits, playback or MP3 export without a browser.
"""

from __future__ import annotations

import argparse
import io
import logging
import math
import sys

import uvicorn
from pydub import AudioSegment

from .config import AUTOCUT_THRESHOLD, configure_logging, ffmpeg_bin, load_settings
from .editor import EditSession
from .errors import ConfigError, RecordathonError
from .library import Library
from .playback import PlaybackController
from .sound import Sound
from .web import create_app

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="recordathon", description="Serve the recording editor.")
    parser.add_argument("port", help="TCP port to listen on")
    parser.add_argument("root", help="directory holding the .wav files and cuts.json")
    parser.add_argument("--host", default=None, help="interface to bind (default 127.0.0.1)")
    parser.add_argument("--debug", action="store_true", help="log at DEBUG level")
    args = parser.parse_args(argv)

    try:
        settings = load_settings(root=args.root, port=args.port, host=args.host)
    except ConfigError as exc:
        parser.error(str(exc))

    configure_logging(logging.DEBUG if args.debug else logging.INFO)
    try:
        library = Library.open(settings)
    except RecordathonError as exc:
        logger.critical("Cannot start: %s", exc)
        return 1

    logger.info("Serving %s on %s:%d", settings.root, settings.host, settings.port)
    uvicorn.run(create_app(library, settings), host=settings.host, port=settings.port)
    return 0


def finite_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value!r}") from None
    if not math.isfinite(number):
        raise argparse.ArgumentTypeError(f"must be a finite number: {value!r}")
    return number


def export_mp3(session: EditSession, path: str, ffmpeg: str) -> None:
    """Encode the session's cut window as an MP3 file with pydub."""
    cropped = session.sound.crop(session.start, session.end)
    AudioSegment.converter = ffmpeg
    audio = AudioSegment.from_wav(io.BytesIO(cropped.to_bytes()))
    audio.export(path, format="mp3")


def play_cut(session: EditSession, player=None) -> None:
    controller = PlaybackController(session, player)
    controller.toggle()
    try:
        controller.wait()
    except KeyboardInterrupt:
        print("\nPlayback stopped by user")
        if controller.playing:
            controller.toggle()


def edit_main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="recordathon-edit", description="Cut one stored recording.")
    parser.add_argument("root", help="directory holding the .wav files and cuts.json")
    parser.add_argument("name", help="recording name")
    parser.add_argument("--autocut", action="store_true", help="trim leading and trailing silence")
    parser.add_argument("--threshold", type=finite_float, default=AUTOCUT_THRESHOLD, help="autocut threshold (0-1)")
    parser.add_argument("--start", type=finite_float, default=None, help="cut start in seconds")
    parser.add_argument("--end", type=finite_float, default=None, help="cut end in seconds")
    parser.add_argument("--save", action="store_true", help="store the resulting cut window")
    parser.add_argument("--waveform", metavar="PNG", help="write the editor view to this image")
    parser.add_argument("--play", action="store_true", help="play the cut on the default output device")
    parser.add_argument("--export", metavar="MP3", help="export the cut as an MP3 file")
    args = parser.parse_args(argv)

    configure_logging(logging.WARNING)
    try:
        settings = load_settings(root=args.root)
        library = Library.open(settings)
        window, data = library.load(args.name)
        sound = Sound.from_bytes(data)
    except RecordathonError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    session = EditSession(
        sound,
        window.start if window is not None else 0.0,
        window.end if window is not None else None,
        settings.canvas_width,
        settings.canvas_height,
    )
    if args.start is not None:
        session.start = args.start
    if args.end is not None:
        session.end = args.end
    if session.end < session.start:
        session.start, session.end = session.end, session.start
    if args.autocut:
        session.autocut(args.threshold)

    print(f"{args.name}: {session.start:.3f}s to {session.end:.3f}s of {session.duration:.3f}s")

    try:
        if args.save:
            library.set_cut(args.name, session.cut)
            print("Cut saved")
        if args.waveform:
            session.redraw().save(args.waveform)
            print(f"Waveform written to {args.waveform}")
        if args.export:
            export_mp3(session, args.export, ffmpeg_bin(settings))
            print(f"Cut exported to {args.export}")
    except RecordathonError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.play:
        play_cut(session)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""FastAPI app: listing, upload, edit and delete pages plus a small JSON API.

Pages are rendered inline. The edit page carries the recording's audio,
cut window and histogram; dragging, autocut and playback then run in the
browser without talking to the server until the user saves.
"""

from __future__ import annotations

import base64
import html
import io
import json
import logging
from typing import Any
from urllib.parse import quote

from fastapi import FastAPI, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, RedirectResponse, Response
from starlette.concurrency import run_in_threadpool

from .config import APP_TITLE, Settings
from .cuts import CutWindow
from .editor import EditSession
from .errors import ClientInputError, NotFoundError, StorageIOError
from .library import Library, parse_upload
from .repository import sanitize_name
from .sound import Sound

logger = logging.getLogger(__name__)

STYLE = """
    body { margin: 0; font-family: -apple-system, BlinkMacSystemFont, sans-serif;
           background: #0f172a; color: #e2e8f0; }
    .wrap { max-width: 760px; margin: 0 auto; padding: 32px 20px; }
    .title { font-size: 32px; font-weight: 700; color: #f97316; }
    .small { color: #94a3b8; font-size: 13px; }
    a { color: #fb923c; }
    ul.files { list-style: none; padding: 0; }
    ul.files li { display: flex; justify-content: space-between; padding: 8px 0;
                  border-bottom: 1px solid rgba(148,163,184,0.12); }
    canvas { display: block; margin: 16px 0; cursor: ew-resize; }
    button { background: #f97316; color: #fff; border: 0; border-radius: 8px;
             padding: 8px 14px; margin-right: 8px; cursor: pointer; }
    input { padding: 6px; border-radius: 6px; border: 1px solid #334155;
            background: #1e293b; color: #e2e8f0; }
"""

ADD_SCRIPT = """
(function() {
  var form = document.getElementById('addForm');
  var status = document.getElementById('status');
  form.addEventListener('submit', function(evt) {
    evt.preventDefault();
    var file = document.getElementById('file').files[0];
    var name = document.getElementById('name').value.trim();
    if (!file || !name) {
      status.textContent = 'Pick a WAV file and a name.';
      return;
    }
    var reader = new FileReader();
    reader.onload = function() {
      var dataUrl = reader.result;
      var data = dataUrl.slice(dataUrl.indexOf(',') + 1);
      var probe = new Audio(dataUrl);
      probe.addEventListener('loadedmetadata', function() {
        var body = {name: name, data: data, cut: {start: 0, end: probe.duration}};
        fetch('/upload', {method: 'POST', body: JSON.stringify(body)})
          .then(function(res) { return res.json(); })
          .then(function(ok) {
            if (ok) {
              window.location = '/edit/' + encodeURIComponent(name.replace(/[\\/.]/g, ''));
            } else {
              status.textContent = 'Upload failed.';
            }
          });
      });
      probe.addEventListener('error', function() {
        status.textContent = 'The browser cannot read that file.';
      });
    };
    reader.readAsDataURL(file);
  });
})();
"""

EDIT_SCRIPT = """
(function() {
  var info = JSON.parse(document.getElementById('recording').textContent);
  var canvas = document.getElementById('waveform');
  var context = canvas.getContext('2d');
  var status = document.getElementById('status');
  var playButton = document.getElementById('play');
  var start = info.start;
  var end = info.end;
  var dragging = null;
  var audioContext = null;
  var decoded = null;
  var source = null;

  function timeToX(time) {
    return info.duration > 0 ? time / info.duration * canvas.width : 0;
  }

  function xToTime(x) {
    x = Math.min(Math.max(x, 0), canvas.width);
    return x / canvas.width * info.duration;
  }

  function draw() {
    var middle = canvas.height / 2;
    context.clearRect(0, 0, canvas.width, canvas.height);
    context.fillStyle = '#FF6900';
    for (var i = 0; i < info.histogram.length; ++i) {
      var height = middle * info.histogram[i];
      context.fillRect(i * 2, middle - height, 1, height * 2);
    }
    context.fillStyle = '#000';
    context.fillRect(timeToX(start), 0, 1, canvas.height);
    context.fillRect(timeToX(end) - 1, 0, 1, canvas.height);
    status.textContent = start.toFixed(2) + 's to ' + end.toFixed(2) + 's';
  }

  function autocut(threshold) {
    var indexToTime = info.duration / info.histogram.length;
    for (var i = 0; i < info.histogram.length; ++i) {
      if (info.histogram[i] > threshold) {
        start = i * indexToTime;
        break;
      }
    }
    for (var j = info.histogram.length - 1; j >= 0; --j) {
      if (info.histogram[j] > threshold) {
        end = j * indexToTime;
        break;
      }
    }
    draw();
  }

  function decode() {
    if (decoded) {
      return Promise.resolve(decoded);
    }
    audioContext = audioContext || new AudioContext();
    var raw = atob(info.data);
    var bytes = new Uint8Array(raw.length);
    for (var i = 0; i < raw.length; ++i) {
      bytes[i] = raw.charCodeAt(i);
    }
    return audioContext.decodeAudioData(bytes.buffer).then(function(buffer) {
      decoded = buffer;
      return buffer;
    });
  }

  function playPause() {
    if (source) {
      source.onended = null;
      source.stop();
      source = null;
      playButton.textContent = 'Play';
      return;
    }
    decode().then(function(buffer) {
      var current = audioContext.createBufferSource();
      current.buffer = buffer;
      current.connect(audioContext.destination);
      current.onended = function() {
        if (source === current) {
          source = null;
          playButton.textContent = 'Play';
        }
      };
      source = current;
      playButton.textContent = 'Pause';
      current.start(0, start, Math.max(end - start, 0));
    });
  }

  function save() {
    var body = {name: info.name, data: info.data, cut: {start: start, end: end}};
    fetch('/upload', {method: 'POST', body: JSON.stringify(body)})
      .then(function(res) { return res.json(); })
      .then(function(ok) { status.textContent = ok ? 'Saved.' : 'Save failed.'; });
  }

  canvas.addEventListener('mousedown', function(evt) {
    var x = evt.offsetX;
    if (Math.abs(x - timeToX(start)) < Math.abs(x - timeToX(end))) {
      dragging = 'start';
    } else {
      dragging = 'end';
    }
  });

  canvas.addEventListener('mousemove', function(evt) {
    if (!dragging) {
      return;
    }
    var time = xToTime(evt.offsetX);
    if (dragging === 'start') {
      start = time;
    } else {
      end = time;
    }
    if (end < start) {
      var temp = start;
      start = end;
      end = temp;
      dragging = dragging === 'start' ? 'end' : 'start';
    }
    draw();
  });

  window.addEventListener('mouseup', function() {
    dragging = null;
  });

  document.getElementById('autocut').addEventListener('click', function() {
    autocut(info.threshold);
  });
  playButton.addEventListener('click', playPause);
  document.getElementById('save').addEventListener('click', save);
  draw();
})();
"""


def _page(title: str, body: str, script: str = "") -> str:
    script_tag = f"<script>{script}</script>" if script else ""
    return f"""<!doctype html>
<html lang="en">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>{html.escape(title)}</title>
  <style>{STYLE}</style>
</head>
<body>
  <div class="wrap">
{body}
  </div>
  {script_tag}
</body>
</html>"""


def _json_for_html(value: Any) -> str:
    return json.dumps(value).replace("</", "<\\/")


def _png(image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def render_home(names: list[str]) -> str:
    items = "\n".join(
        f'      <li><a href="/edit/{quote(name)}">{html.escape(name)}</a>'
        f'<a href="/delete/{quote(name)}">delete</a></li>'
        for name in names
    )
    body = f"""    <div class="title">{APP_TITLE}</div>
    <div class="small">{len(names)} recording(s) · <a href="/add">add one</a></div>
    <ul class="files">
{items}
    </ul>"""
    return _page(APP_TITLE, body)


def render_add() -> str:
    body = """    <div class="title">Add a recording</div>
    <form id="addForm">
      <p><input id="name" type="text" placeholder="Name" /></p>
      <p><input id="file" type="file" accept="audio/wav,.wav" /></p>
      <p><button type="submit">Upload</button> <a href="/">back</a></p>
    </form>
    <div class="small" id="status"></div>"""
    return _page(f"{APP_TITLE} - add", body, ADD_SCRIPT)


def render_edit(name: str, window: CutWindow, data: bytes, settings: Settings) -> str:
    session = _session_for(Sound.from_bytes(data), window, settings)
    info = {
        "name": name,
        "data": base64.b64encode(data).decode("ascii"),
        "start": window.start,
        "end": window.end,
        "duration": session.duration,
        "histogram": session.histogram,
        "threshold": settings.autocut_threshold,
    }
    body = f"""    <div class="title">{html.escape(name)}</div>
    <canvas id="waveform" width="{session.width}" height="{session.height}"
            style="background-color: #ddd"></canvas>
    <div class="small" id="status"></div>
    <p>
      <button id="play" type="button">Play</button>
      <button id="autocut" type="button">Autocut</button>
      <button id="save" type="button">Save</button>
      <a href="/">back</a>
    </p>
    <script id="recording" type="application/json">{_json_for_html(info)}</script>"""
    return _page(f"{APP_TITLE} - {name}", body, EDIT_SCRIPT)


def create_app(library: Library, settings: Settings) -> FastAPI:
    app = FastAPI(title=APP_TITLE)
    app.state.library = library
    app.state.settings = settings

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError) -> Response:
        logger.warning("Not found: %s", exc)
        return PlainTextResponse("404 page not found", status_code=404)

    @app.exception_handler(ClientInputError)
    async def bad_input(request: Request, exc: ClientInputError) -> Response:
        logger.warning("Rejected request: %s", exc)
        return PlainTextResponse(str(exc), status_code=400)

    @app.exception_handler(StorageIOError)
    async def storage_failed(request: Request, exc: StorageIOError) -> Response:
        logger.error("Storage failure: %s", exc, exc_info=exc)
        return PlainTextResponse("storage failure", status_code=500)

    @app.get("/", response_class=HTMLResponse)
    def home() -> str:
        logger.info("Serving homepage.")
        return render_home(sorted(library.list_recordings()))

    @app.get("/add", response_class=HTMLResponse)
    def add_page() -> str:
        logger.info("Serving add page.")
        return render_add()

    @app.post("/upload")
    async def upload(request: Request) -> JSONResponse:
        raw = await request.body()
        try:
            item = await run_in_threadpool(parse_upload, raw)
        except ClientInputError as exc:
            logger.warning("%s", exc)
            return JSONResponse(False, status_code=400)
        try:
            await run_in_threadpool(library.add, item)
        except StorageIOError as exc:
            logger.error("Failed to save upload %s: %s", item.name, exc, exc_info=exc)
            return JSONResponse(False, status_code=500)
        return JSONResponse(True)

    @app.get("/edit/{name:path}", response_class=HTMLResponse)
    def edit_page(name: str) -> str:
        name = sanitize_name(name)
        logger.info("Serving edit page: %s", name)
        window, data = library.edit_info(name)
        return render_edit(name, window, data, settings)

    @app.get("/delete/{name:path}")
    def delete_page(name: str) -> Response:
        name = sanitize_name(name)
        logger.info("Serving delete page: %s", name)
        library.delete(name)
        return RedirectResponse("/", status_code=307)

    @app.get("/api/health")
    def health() -> dict[str, Any]:
        return {"ok": True, "recordings": len(library.list_recordings())}

    @app.get("/api/recordings")
    def list_recordings() -> list[str]:
        return sorted(library.list_recordings())

    @app.get("/api/recordings/{name}")
    def recording_info(name: str) -> dict[str, Any]:
        name = sanitize_name(name)
        window, data = library.edit_info(name)
        session = _session_for(Sound.from_bytes(data), window, settings)
        return {
            "name": name,
            "start": window.start,
            "end": window.end,
            "duration": session.duration,
            "histogram": session.histogram,
        }

    @app.get("/api/recordings/{name}/waveform.png")
    def waveform(
        name: str,
        start: float | None = Query(None, allow_inf_nan=False),
        end: float | None = Query(None, allow_inf_nan=False),
    ) -> Response:
        window, data = library.load(name)
        session = _session_for(Sound.from_bytes(data), window, settings)
        if start is not None:
            session.start = start
        if end is not None:
            session.end = end
        return Response(content=_png(session.redraw()), media_type="image/png")

    @app.post("/api/recordings/{name}/autocut")
    def autocut(
        name: str,
        threshold: float = Query(settings.autocut_threshold, ge=0.0, allow_inf_nan=False),
    ) -> dict[str, float]:
        window, data = library.load(name)
        session = _session_for(Sound.from_bytes(data), window, settings)
        return session.autocut(threshold).model_dump()

    return app


def _session_for(sound: Sound, window: CutWindow | None, settings: Settings) -> EditSession:
    if window is None:
        return EditSession(sound, width=settings.canvas_width, height=settings.canvas_height)
    return EditSession(
        sound, window.start, window.end, settings.canvas_width, settings.canvas_height
    )

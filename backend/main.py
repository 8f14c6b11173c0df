import os
import sys
import json
import asyncio
import threading
import uvicorn
import webview
import argparse
import time
from fastapi import FastAPI, WebSocket, WebSocketDisconnect, Body, Query, Request, HTTPException
from fastapi.staticfiles import StaticFiles
from fastapi.responses import PlainTextResponse, StreamingResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError
from typing import List
from contextlib import asynccontextmanager

from bridge import DIRECT, FileBridge, get_log_files_recursive
from logpager.encodings import SUPPORTED_ENCODINGS, DEFAULT_ENCODING
from logpager.indexer import DEFAULT_CHUNK_SIZE
from logpager.loggen import LogGenRequest, build_filename, generate_log_stream
from logpager.messages import ReadResult

DEV_ENV_VAR = "LOGPAGER_DEV"

# Global bridge instance
bridge = FileBridge()

# Event loop reference for thread-safe broadcasting
main_loop = None

def is_dev_mode() -> bool:
    return os.environ.get(DEV_ENV_VAR, "").lower() in ("1", "true", "yes")

@asynccontextmanager
async def lifespan(app: FastAPI):
    global main_loop
    main_loop = asyncio.get_running_loop()
    print("[Server] Event loop captured for signal broadcasting.")
    yield
    bridge.close_all()
    print("[Server] Shutting down.")

# 1. Initialize FastAPI with lifespan
app = FastAPI(lifespan=lifespan)

# Enable CORS for development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.middleware("http")
async def local_only(request: Request, call_next):
    # /local routes are developer tools and only exist in dev mode
    if not is_dev_mode() and request.url.path.startswith("/local"):
        return PlainTextResponse("Not Found", status_code=404)
    return await call_next(request)

# WebSocket Manager
class ConnectionManager:
    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)

    def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)

    async def broadcast(self, message: dict):
        if not self.active_connections:
            return
        for connection in list(self.active_connections):
            try:
                await connection.send_json(message)
            except (WebSocketDisconnect, RuntimeError) as e:
                print(f"[WebSocket] Broadcast error to {connection}: {e}")
                self.disconnect(connection)

manager = ConnectionManager()

# Setup Bridge Signals to WebSocket
def broadcast_signal(signal_name, *args):
    """
    Called from indexing worker threads to broadcast signals via WebSockets.
    """
    message = {
        "signal": signal_name,
        "args": args
    }

    if main_loop:
        # Schedule the coroutine on the main event loop from ANY thread
        asyncio.run_coroutine_threadsafe(manager.broadcast(message), main_loop)
    else:
        print(f"[Bridge] Global loop not ready for signal: {signal_name}")

# Connect signals (emitted from worker threads, hence direct)
bridge.messagePosted.connect(lambda file_id, msg: broadcast_signal("message", file_id, msg.to_wire()), DIRECT)
bridge.fileLoaded.connect(lambda *args: broadcast_signal("fileLoaded", *args), DIRECT)
bridge.operationStarted.connect(lambda *args: broadcast_signal("operationStarted", *args), DIRECT)
bridge.operationProgress.connect(lambda *args: broadcast_signal("operationProgress", *args), DIRECT)
bridge.operationError.connect(lambda *args: broadcast_signal("operationError", *args), DIRECT)
bridge.pendingFilesCount.connect(lambda *args: broadcast_signal("pendingFilesCount", *args), DIRECT)
bridge.frontendReady.connect(lambda *args: broadcast_signal("frontendReady", *args), DIRECT)

# 2. Define API Endpoints (FastAPI)
@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    Message channel to the reader workers. Incoming frames look like
    {"fileId": ..., "message": {"messageType": "CreateIndex" | "Read", ...}}.
    """
    await manager.connect(websocket)
    try:
        while True:
            data = await websocket.receive_text()
            try:
                frame = json.loads(data)
                file_id = frame["fileId"]
                payload = frame["message"]
            except (ValueError, KeyError, TypeError):
                print(f"[WebSocket] Ignoring malformed frame: {data[:200]}")
                continue
            reply = bridge.handle_message(file_id, payload)
            if reply is not None:
                await websocket.send_json({"fileId": file_id, "message": reply})
    except WebSocketDisconnect:
        manager.disconnect(websocket)

@app.get("/api/platform")
def get_platform():
    return sys.platform

@app.get("/api/encodings")
def get_encodings():
    return {
        "default": DEFAULT_ENCODING,
        "encodings": [e.to_dict() for e in SUPPORTED_ENCODINGS],
    }

@app.post("/api/detect_encoding")
def detect_encoding(data: dict = Body(...)):
    try:
        return bridge.detect_encoding(data['file_path']).model_dump()
    except OSError as e:
        raise HTTPException(status_code=404, detail=str(e))

@app.post("/api/open_file")
def open_file(data: dict = Body(...)):
    return bridge.open_file(data['file_id'], data['file_path'], data.get('encoding'), data.get('chunk_size'))

@app.post("/api/set_encoding")
def set_encoding(data: dict = Body(...)):
    return bridge.set_encoding(data['file_id'], data['encoding'])

@app.get("/api/read_lines")
def read_lines(file_id: str, line_start: int = Query(ge=0), count: int = Query(ge=1)):
    result = bridge.read_lines(file_id, line_start, count)
    if result is None:
        # Not indexed (yet): empty window rather than an error
        result = ReadResult(line_start=line_start, lines=[])
    return result.to_wire()

@app.post("/api/ready")
def ready():
    bridge.ready()
    return True

@app.post("/api/close_file")
def close_file(data: dict = Body(...)):
    bridge.close_file(data['file_id'])
    return True

@app.post("/local/loggen")
def loggen(data: dict = Body(...)):
    try:
        parsed = LogGenRequest.model_validate(data)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid request")

    opts = parsed.to_options()
    filename = build_filename(parsed.format)
    print(f"[LogGen] Streaming {opts.total_size_bytes} bytes of {parsed.format} as {filename}")
    return StreamingResponse(
        generate_log_stream(opts),
        media_type="application/octet-stream",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "Cache-Control": "no-store",
        },
    )

# Serve Frontend
base_dir = os.path.dirname(os.path.abspath(__file__))
www_dir = os.path.join(base_dir, "www")

if os.path.exists(www_dir):
    app.mount("/", StaticFiles(directory=www_dir, html=True), name="static")

def run_server(port):
    uvicorn.run(app, host="127.0.0.1", port=port, log_level="error")

def start_app():
    parser = argparse.ArgumentParser(description='LogPager - Large text file pager')
    parser.add_argument('paths', nargs='*', help='Files or folders to open')
    parser.add_argument('--port', type=int, default=12345, help='Backend server port')
    parser.add_argument('--no-ui', action='store_true', help='Start server only, no UI window')
    parser.add_argument('--chunk-size', type=int, default=DEFAULT_CHUNK_SIZE, help='Indexing chunk size in bytes')
    parser.add_argument('--dev', action='store_true', help=f'Enable /local developer routes (same as {DEV_ENV_VAR}=1)')
    args = parser.parse_args()

    if args.chunk_size < 1:
        parser.error("--chunk-size must be >= 1")
    bridge.chunk_size = args.chunk_size
    if args.dev:
        os.environ[DEV_ENV_VAR] = "1"

    port = args.port

    # Start server in thread
    t = threading.Thread(target=run_server, args=(port,), daemon=True)
    t.start()

    # Give server a moment to start
    time.sleep(1)

    url = f"http://127.0.0.1:{port}"
    if not os.path.exists(www_dir):
        # Development mode (Vite)
        url = "http://localhost:3000"
        print(f"Backend running on http://127.0.0.1:{port}")
        print(f"Opening dev frontend: {url}")
    else:
        print(f"Starting LogPager on {url}")

    # Handle CLI paths
    def on_ready():
        if not args.paths:
            return
        pending_files = []
        for path in args.paths:
            abs_path = os.path.abspath(path)
            if os.path.isdir(abs_path):
                pending_files.extend([f['path'] for f in get_log_files_recursive(abs_path)])
            elif os.path.isfile(abs_path):
                pending_files.append(abs_path)

        if pending_files:
            bridge.pendingFilesCount.emit(len(pending_files))
            for full_path in pending_files:
                try:
                    stats = os.stat(full_path)
                    encoding = bridge.detect_encoding(full_path).encoding
                except OSError as e:
                    print(f"[Server] Skipping {full_path}: {e}")
                    continue
                file_id = f"cli-{int(stats.st_mtime)}-{stats.st_size}"
                bridge.open_file(file_id, full_path, encoding)

    # Subscribe to frontendReady to load CLI paths
    bridge.frontendReady.connect(on_ready, DIRECT)

    if not args.no_ui:
        webview.create_window('LogPager', url, width=1200, height=800)
        webview.start()
    else:
        try:
            while True: time.sleep(1)
        except KeyboardInterrupt:
            pass

if __name__ == "__main__":
    start_app()

import os
import json
import threading
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import QObject, Qt, QThread, pyqtSignal, pyqtSlot
from pydantic import ValidationError

from logpager.detector import SAMPLE_SIZE, DetectionResult, detect_file_encoding
from logpager.encodings import normalize_encoding
from logpager.indexer import DEFAULT_CHUNK_SIZE, IndexCancelled, build_index
from logpager.messages import (
    CreateIndex, CreateIndexError, CreateIndexResult, CreateIndexStatus,
    Read, ReadResult, parse_message,
)
from logpager.reader import LineReader
from logpager.sources import BaseByteSource, open_source, to_path

# Signals between worker threads and the bridge must not depend on a Qt event loop
DIRECT = Qt.ConnectionType.DirectConnection

class IndexingWorker(QThread):
    """
    索引工作线程。
    按块扫描字节源中的换行符，记录每一行起始位置的文件偏移量。
    Every signal carries the build generation so late notifications from a
    superseded build can be told apart.
    """
    finished = pyqtSignal(int, object)     # (generation, LineIndex)
    progress = pyqtSignal(int, int, int)   # (generation, done_bytes, file_size)
    error = pyqtSignal(int, str)           # (generation, message)

    def __init__(self, source: BaseByteSource, encoding: str, chunk_size: int, generation: int):
        super().__init__()
        self.source = source
        self.encoding = encoding
        self.chunk_size = chunk_size
        self.generation = generation
        self._is_running = True

    def stop(self):
        self._is_running = False

    def is_running(self) -> bool:
        return self._is_running

    def run(self):
        try:
            index = build_index(
                self.source, self.encoding, self.chunk_size,
                on_progress=lambda done, total: self.progress.emit(self.generation, done, total),
                is_running=self.is_running,
            )
        except IndexCancelled:
            return
        except Exception as e:
            if self._is_running: self.error.emit(self.generation, str(e))
            return

        if self._is_running:
            self.finished.emit(self.generation, index)

class ReaderSession:
    """
    文件会话类。
    封装了单个打开文件的所有状态：字节源、当前编码、已发布的索引快照。
    The published LineReader is replaced as a whole when a build finishes, so
    readers never see a half-built offset table.
    """
    def __init__(self, file_id, path, source: BaseByteSource):
        self.id = file_id
        self.path = str(path)
        self.source = source
        self.encoding = normalize_encoding(None)
        self.chunk_size = DEFAULT_CHUNK_SIZE
        self.generation = 0
        self.reader: Optional[LineReader] = None  # None until the first build succeeds
        self.workers = {}                         # 后台线程句柄
        self.lock = threading.Lock()

    @property
    def is_indexed(self) -> bool:
        return self.reader is not None

    def next_generation(self) -> int:
        with self.lock:
            self.generation += 1
            return self.generation

    def publish(self, generation, index) -> Optional[LineReader]:
        """Installs a finished index unless a newer build was requested meanwhile."""
        with self.lock:
            if generation != self.generation:
                return None
            self.reader = LineReader(self.source, index)
            return self.reader

    def is_current(self, generation) -> bool:
        with self.lock:
            return generation == self.generation

    def read(self, line_start: int, count: int) -> Optional[ReadResult]:
        """Returns None while no index has been published."""
        with self.lock:
            reader = self.reader
        if reader is None:
            return None
        return ReadResult(line_start=line_start, lines=reader.read_lines(line_start, count))

    def close(self, bridge=None):
        """关闭会话。如果提供了 bridge，工作线程将异步退出。"""
        for name, worker in list(self.workers.items()):
            if bridge:
                bridge._retire_worker(worker)
            else:
                if worker.isRunning():
                    worker.stop()
                    worker.wait()
        self.workers.clear()
        with self.lock:
            self.reader = None
        if self.source:
            self.source.close()
            self.source = None

class FileBridge(QObject):
    """
    统一后端：管理多个文件会话。
    Worker control surface: callers post CreateIndex / Read messages and
    receive CreateIndexStatus / CreateIndexResult / CreateIndexError
    notifications through messagePosted; a Read is answered directly.
    """

    # 信号定义（第一个参数是 file_id，用于前端区分文件）
    messagePosted = pyqtSignal(str, object)           # (file_id, Message)
    fileLoaded = pyqtSignal(str, str)                 # (file_id, JSON_payload)
    operationStarted = pyqtSignal(str, str)           # (file_id, opName)
    operationProgress = pyqtSignal(str, str, float)   # (file_id, opName, percent)
    operationError = pyqtSignal(str, str, str)        # (file_id, opName, message)

    pendingFilesCount = pyqtSignal(int)  # Number of files being loaded from CLI
    frontendReady = pyqtSignal()         # Signal to indicate frontend is ready

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE):
        super().__init__()
        self._sessions = {}  # file_id -> ReaderSession
        self._zombie_workers = []  # 记录正在停止的工作线程，防止其过早被回收
        self.chunk_size = chunk_size

    def _retire_worker(self, worker):
        """记录停止一个工作线程，直到其真正结束。"""
        if not worker: return
        try:
            # 断开所有信号，防止已弃用的线程再向前端发送消息
            worker.finished.disconnect()
            worker.error.disconnect()
            worker.progress.disconnect()
        except TypeError:
            pass  # nothing connected

        worker.stop()
        self._zombie_workers.append(worker)
        self._reap_zombies()

    def _reap_zombies(self):
        # 等到工作线程真正结束后再释放引用
        self._zombie_workers = [w for w in self._zombie_workers if w.isRunning()]

    # ------------------------------------------------------------
    # Message protocol
    # ------------------------------------------------------------

    def handle_message(self, file_id: str, payload: dict) -> Optional[dict]:
        """
        Dispatches one raw request. A Read on an indexed session is answered with
        the ReadResult payload; build notifications go out through messagePosted.
        """
        try:
            message = parse_message(payload)
        except ValidationError as e:
            print(f"[Bridge] Invalid message for {file_id}: {e.error_count()} error(s)")
            return None

        if isinstance(message, CreateIndex):
            if not self.open_file(file_id, to_path(message.file), message.encoding, message.chunk_size):
                session = self._sessions.get(file_id)
                self.messagePosted.emit(file_id, CreateIndexError(
                    generation=session.generation if session else 0,
                    message=f"Cannot open {message.file}"))
            return None
        if isinstance(message, Read):
            result = self.read_lines(file_id, message.line_start, message.count)
            return result.to_wire() if result is not None else None

        print(f"[Bridge] Ignoring {message.message_type} sent to {file_id}")
        return None

    # ------------------------------------------------------------
    # Index phase
    # ------------------------------------------------------------

    @pyqtSlot(str, str, result=bool)
    def open_file(self, file_id: str, file_path: str, encoding: Optional[str] = None,
                  chunk_size: Optional[int] = None) -> bool:
        """
        打开并索引文件 (Open and Index)。
        Re-opening the same path keeps the session and only rebuilds the index.
        """
        if chunk_size is not None and chunk_size < 1:
            print(f"[Bridge] Rejecting chunk size {chunk_size} for {file_id}")
            return False
        try:
            path = Path(file_path)
            if not path.is_file(): return False

            session = self._sessions.get(file_id)
            if session is not None and session.path != str(path):
                # 不同文件：关闭旧会话（防止内存泄漏）
                session.close(self)
                session = None
            if session is None:
                session = ReaderSession(file_id, path, open_source(str(path)))
                self._sessions[file_id] = session

            session.encoding = normalize_encoding(encoding or session.encoding)
            if chunk_size:
                session.chunk_size = chunk_size
            elif session.generation == 0:
                session.chunk_size = self.chunk_size
            self._start_indexing(session)
            return True
        except (OSError, ValueError) as e:
            print(f"[Bridge] Error opening file {file_path}: {e}")
            return False

    @pyqtSlot(str, str, result=bool)
    def set_encoding(self, file_id: str, encoding: str) -> bool:
        """Changing the encoding invalidates the index; a fresh build is started."""
        session = self._sessions.get(file_id)
        if session is None or session.source is None: return False
        session.encoding = normalize_encoding(encoding)
        self._start_indexing(session)
        return True

    def _start_indexing(self, session: ReaderSession):
        file_id = session.id

        # Last request wins: the in-flight build is retired before a new one starts
        if 'indexing' in session.workers:
            self._retire_worker(session.workers.pop('indexing'))

        generation = session.next_generation()
        self.operationStarted.emit(file_id, "indexing")

        worker = IndexingWorker(session.source, session.encoding, session.chunk_size, generation)
        session.workers['indexing'] = worker
        worker.progress.connect(lambda g, done, total: self._on_indexing_progress(file_id, g, done, total), DIRECT)
        worker.finished.connect(lambda g, index: self._on_indexing_finished(file_id, g, index), DIRECT)
        worker.error.connect(lambda g, e: self._on_indexing_error(file_id, g, e), DIRECT)
        worker.start()

    def _session_for(self, file_id, generation) -> Optional[ReaderSession]:
        session = self._sessions.get(file_id)
        if session is None or not session.is_current(generation):
            return None
        return session

    def _on_indexing_progress(self, file_id, generation, done_bytes, file_size):
        if self._session_for(file_id, generation) is None: return
        self.messagePosted.emit(file_id, CreateIndexStatus(
            generation=generation, done_bytes=done_bytes, file_size=file_size))
        percent = done_bytes / file_size * 100 if file_size else 100.0
        self.operationProgress.emit(file_id, "indexing", percent)

    def _on_indexing_finished(self, file_id, generation, index):
        session = self._session_for(file_id, generation)
        if session is None: return
        reader = session.publish(generation, index)
        if reader is None: return

        self.messagePosted.emit(file_id, CreateIndexResult(
            generation=generation, line_count=reader.line_count, file_size=reader.file_size))
        self.fileLoaded.emit(file_id, json.dumps({
            "name": Path(session.path).name,
            "size": reader.file_size,
            "lineCount": reader.line_count,
            "encoding": index.encoding,
        }))
        print(f"[Bridge] Session {file_id}: {reader.line_count} lines indexed ({index.encoding})")

    def _on_indexing_error(self, file_id, generation, message):
        if self._session_for(file_id, generation) is None: return
        print(f"[Bridge] Indexing failed for {file_id}: {message}")
        self.messagePosted.emit(file_id, CreateIndexError(generation=generation, message=message))
        self.operationError.emit(file_id, "indexing", message)

    def wait_for_index(self, file_id: str, timeout_ms: int = 10000) -> bool:
        """Blocks until the current build of file_id ends. True if it published an index."""
        session = self._sessions.get(file_id)
        if session is None: return False
        worker = session.workers.get('indexing')
        if worker is not None and not worker.wait(timeout_ms):
            return False
        return session.is_indexed

    # ------------------------------------------------------------
    # Read phase
    # ------------------------------------------------------------

    def read_lines(self, file_id: str, line_start: int, count: int) -> Optional[ReadResult]:
        """
        读取视口内的行。
        None means the session is unknown or not indexed yet (no-op). Read
        errors are reported and do not affect later reads.
        """
        session = self._sessions.get(file_id)
        if session is None or line_start < 0 or count < 1: return None
        try:
            return session.read(line_start, count)
        except OSError as e:
            print(f"[Bridge] Read error for {file_id}: {e}")
            self.operationError.emit(file_id, "read", str(e))
            return None

    def detect_encoding(self, file_path: str) -> DetectionResult:
        """Sniffs the first bytes of a file; the result is only a hint for open_file."""
        with open(to_path(file_path), 'rb') as f:
            return detect_file_encoding(f.read(SAMPLE_SIZE))

    @pyqtSlot()
    def ready(self):
        """Called by frontend when it is fully initialized."""
        self.frontendReady.emit()

    @pyqtSlot(str)
    def close_file(self, file_id: str):
        if file_id in self._sessions:
            self._sessions[file_id].close(self)
            del self._sessions[file_id]

    def close_all(self):
        for file_id in list(self._sessions.keys()):
            self.close_file(file_id)

def get_log_files_recursive(folder_path):
    """Utility to find log files in a directory recursively."""
    log_files = []
    try:
        for root, _, files in os.walk(folder_path):
            for file in files:
                # Common log extensions or files with no extension (often logs in linux)
                if file.lower().endswith(('.log', '.txt', '.json', '.csv', '.md')) or '.' not in file:
                    full_path = os.path.join(root, file)
                    try:
                        stats = os.stat(full_path)
                    except OSError:
                        continue
                    log_files.append({"name": file, "path": full_path, "size": stats.st_size})
    except OSError as e:
        print(f"Error walking directory {folder_path}: {e}")
    return log_files

import re
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterator, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

LogFormat = Literal["apache-common", "apache-combined", "tomcat-access", "custom"]

DEFAULT_METHOD_WEIGHTS = {"GET": 70, "POST": 20, "PUT": 4, "PATCH": 2, "DELETE": 4}

DEFAULT_STATUS_WEIGHTS = {
    "200": 80, "201": 2, "204": 2, "301": 1, "302": 1, "304": 5,
    "400": 2, "401": 1, "403": 1, "404": 4, "429": 0.5, "500": 0.8, "503": 0.7,
}

DEFAULT_PATH_BASES = [
    "/", "/api", "/assets", "/login", "/logout",
    "/products", "/search", "/admin", "/download", "/upload",
]

DEFAULT_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_5_0) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.4 Safari/605.1.15",
    "curl/8.7.1",
    "Wget/1.21.4 (linux-gnu)",
    "Mozilla/5.0 (X11; Ubuntu; Linux x86_64; rv:126.0) Gecko/20100101 Firefox/126.0",
    "PostmanRuntime/7.39.0",
]

DEFAULT_REFERRERS = [
    "-",
    "https://www.google.com/",
    "https://www.bing.com/",
    "https://example.com/",
    "https://github.com/",
]

DEFAULT_CUSTOM_PATTERN = '{host} {ident} {user} [{time}] "{request}" {status} {bytes}'

USERS = ["alice", "bob", "carol", "dave", "erin", "frank", "-"]
FILL_CHARS = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789 -_/.:?=&%"
MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
DELIMITERS = {"space": " ", "tab": "\t", "comma": ",", "pipe": "|"}
SIZE_UNITS = {"B": 1, "KB": 1024, "MB": 1024 ** 2, "GB": 1024 ** 3}

BATCH_LINES = 64
BATCH_FLUSH_CHARS = 32 * 1024

@dataclass
class LogGenOptions:
    format: str = "apache-combined"
    total_size_bytes: int = 1024 * 1024
    max_line_length: Optional[int] = None  # 超过则截断；按 large_line_ratio 填充到该长度
    newline: str = "\n"
    delimiter: str = "space"
    seed: Optional[int] = None
    pattern: Optional[str] = None          # format == "custom" 时使用
    large_line_ratio: float = 0.02
    method_weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_METHOD_WEIGHTS))
    status_weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_STATUS_WEIGHTS))
    path_base_list: List[str] = field(default_factory=lambda: list(DEFAULT_PATH_BASES))
    user_agents: List[str] = field(default_factory=lambda: list(DEFAULT_AGENTS))
    referrers: List[str] = field(default_factory=lambda: list(DEFAULT_REFERRERS))
    start_time: Optional[datetime] = None

class LogGenRequest(BaseModel):
    """Body of POST /local/loggen"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    format: LogFormat = "apache-combined"
    size: int = Field(ge=1)
    size_unit: Literal["B", "KB", "MB", "GB"] = "MB"
    max_line_length: Optional[int] = Field(default=None, ge=0)
    newline: Literal["\n", "\r\n"] = "\n"
    delimiter: Literal["space", "tab", "comma", "pipe"] = "space"
    seed: Optional[int] = Field(default=None, gt=0)
    large_line_ratio: float = Field(default=0.02, ge=0, le=1)
    pattern: Optional[str] = None
    # Advanced knobs, not exposed in the UI
    method_weights: Optional[Dict[str, float]] = None
    status_weights: Optional[Dict[str, float]] = None
    path_base_list: Optional[List[str]] = None
    user_agents: Optional[List[str]] = None
    referrers: Optional[List[str]] = None

    def to_options(self) -> LogGenOptions:
        opts = LogGenOptions(
            format=self.format,
            total_size_bytes=max(1, self.size * SIZE_UNITS[self.size_unit]),
            max_line_length=self.max_line_length if self.max_line_length else None,
            newline=self.newline,
            delimiter=self.delimiter,
            seed=self.seed,
            pattern=self.pattern,
            large_line_ratio=self.large_line_ratio,
        )
        if self.method_weights: opts.method_weights = self.method_weights
        if self.status_weights: opts.status_weights = self.status_weights
        if self.path_base_list: opts.path_base_list = self.path_base_list
        if self.user_agents: opts.user_agents = self.user_agents
        if self.referrers: opts.referrers = self.referrers
        return opts

def pick_weighted(rng: random.Random, weights: Dict[str, float]) -> str:
    """Weighted choice; entries with a weight <= 0 are never picked."""
    items = list(weights.items())
    total = sum(w for _, w in items if w > 0)
    r = rng.random() * total
    for key, w in items:
        if w <= 0: continue
        if r < w:
            return key
        r -= w
    return items[0][0]

def random_ip(rng: random.Random) -> str:
    return ".".join(str(rng.randint(1, 254)) for _ in range(4))

def _base36(n: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    out = ""
    while n:
        n, r = divmod(n, 36)
        out = digits[r] + out
    return out or "0"

def random_path(rng: random.Random, bases: List[str]) -> str:
    base = rng.choice(bases) if bases else "/"
    parts = [base or "/"]
    for _ in range(rng.randint(0, 4)):
        parts.append(_base36(rng.randint(1, 9999)))
    path = re.sub(r"/+", "/", "/".join(parts))
    qs_pairs = rng.randint(0, 3)
    if qs_pairs:
        path += "?" + "&".join(f"k{rng.randint(1, 9)}=v{rng.randint(1, 999)}" for _ in range(qs_pairs))
    return path

def apache_time(dt: datetime) -> str:
    dt = dt.astimezone(timezone.utc)
    return f"{dt.day:02d}/{MONTHS[dt.month - 1]}/{dt.year}:{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} +0000"

def format_apache_common(ctx, sep):
    return sep.join([ctx["host"], ctx["ident"], ctx["user"], f"[{ctx['time']}]",
                     f'"{ctx["request"]}"', str(ctx["status"]), str(ctx["bytes"])])

def format_apache_combined(ctx, sep):
    return sep.join([format_apache_common(ctx, sep), f'"{ctx["referrer"]}"', f'"{ctx["agent"]}"'])

def format_tomcat_access(ctx, sep):
    # AccessLogValve: %h %l %u %t "%r" %s %b %D
    return sep.join([format_apache_common(ctx, sep), str(ctx["responseTimeMs"])])

def format_custom(pattern: str, ctx: dict) -> str:
    """Substitutes {key} placeholders; unknown keys become empty."""
    return re.sub(r"\{(\w+)\}", lambda m: str(ctx.get(m.group(1), "")), pattern)

def apply_max_line(line: str, max_len: Optional[int], rng: random.Random, enforce: bool = False) -> str:
    if not max_len or max_len <= 0:
        return line
    if len(line) >= max_len:
        return line[:max_len]
    if enforce:
        return line + "".join(rng.choice(FILL_CHARS) for _ in range(max_len - len(line)))
    return line

def build_filename(log_format: str, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return f"dummy-{log_format}-{now.strftime('%Y-%m-%d-%H-%M-%S')}.log"

def _make_line(rng: random.Random, opts: LogGenOptions, now: datetime, sep: str) -> str:
    method = pick_weighted(rng, opts.method_weights)
    ctx = {
        "host": random_ip(rng),
        "ident": "-",
        "user": rng.choice(USERS),
        "time": apache_time(now),
        "request": f"{method} {random_path(rng, opts.path_base_list)} HTTP/1.1",
        "status": int(pick_weighted(rng, opts.status_weights)),
        "bytes": int(1024 * rng.random() ** 3),  # 大多数很小，少数较大
        "agent": rng.choice(opts.user_agents),
        "referrer": rng.choice(opts.referrers),
        "responseTimeMs": int(rng.random() ** 2 * 3000),
    }
    if opts.format == "apache-common":
        return format_apache_common(ctx, sep)
    if opts.format == "tomcat-access":
        return format_tomcat_access(ctx, sep)
    if opts.format == "custom":
        return format_custom(opts.pattern or DEFAULT_CUSTOM_PATTERN, ctx)
    return format_apache_combined(ctx, sep)

def generate_log_stream(opts: LogGenOptions) -> Iterator[bytes]:
    """
    生成模拟访问日志 (流式)。
    Yields UTF-8 batches of whole lines until at least total_size_bytes have
    been produced. The same seed and start_time give the same bytes.
    """
    seed = opts.seed if opts.seed is not None else random.randrange(2 ** 31)
    rng = random.Random(seed)
    sep = DELIMITERS.get(opts.delimiter, " ")
    now = opts.start_time or datetime.now(timezone.utc)
    produced = 0

    while produced < opts.total_size_bytes:
        lines = []
        chars = 0
        for _ in range(BATCH_LINES):
            line = _make_line(rng, opts, now, sep)
            now += timedelta(milliseconds=rng.randint(1, 1200))
            make_large = rng.random() < opts.large_line_ratio
            line = apply_max_line(line, opts.max_line_length, rng, make_large) + opts.newline
            lines.append(line)
            chars += len(line)
            if produced + chars >= opts.total_size_bytes or chars > BATCH_FLUSH_CHARS:
                break

        buf = "".join(lines).encode("utf-8")
        produced += len(buf)
        if buf:
            yield buf

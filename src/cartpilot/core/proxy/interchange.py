"""Line-oriented proxy list format.

One proxy per line, either ``host:port`` or ``host:port:username:password``.
Blank lines and ``#`` comments are ignored on read.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from pathlib import Path

from cartpilot.core.models.proxy import Proxy, ProxyType


def parse_proxy_line(line: str, proxy_type: ProxyType = ProxyType.HTTP) -> Proxy:
    """
    Parse one interchange line.

    Raises:
        ValueError: If the line is malformed
    """
    return Proxy.from_line(line, proxy_type)


def format_proxy_line(proxy: Proxy) -> str:
    return proxy.to_line()


def iter_proxy_lines(text: str) -> Iterator[tuple[int, str]]:
    """Yield (line_number, line) for every non-blank, non-comment line."""
    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        yield number, line


def read_proxy_file(
    path: Path | str,
    proxy_type: ProxyType = ProxyType.HTTP,
) -> tuple[list[Proxy], list[str]]:
    """
    Parse a proxy list file.

    Returns:
        Parsed proxies and one error message per malformed line
    """
    proxies: list[Proxy] = []
    errors: list[str] = []

    text = Path(path).read_text(encoding="utf-8")
    for number, line in iter_proxy_lines(text):
        try:
            proxies.append(parse_proxy_line(line, proxy_type))
        except ValueError as e:
            errors.append(f"line {number}: {e}")

    return proxies, errors


def write_proxy_file(path: Path | str, proxies: Iterable[Proxy]) -> int:
    """Write proxies one per line; returns the number written."""
    lines = [format_proxy_line(p) for p in proxies]
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("\n".join(lines) + ("\n" if lines else ""), encoding="utf-8")
    return len(lines)

from __future__ import annotations

from urllib.parse import urlparse

import uvicorn

from shared.constants import SANDBOXD_BASE_URL, sandbox_home
from shared.logging_config import setup_logging


def _host_port_from_base_url() -> tuple[str, int]:
    parsed = urlparse(SANDBOXD_BASE_URL)
    host = parsed.hostname
    port = parsed.port

    if parsed.scheme != "http" or host != "127.0.0.1" or port is None:
        raise RuntimeError("SANDBOXD_BASE_URL must be http://127.0.0.1:<port>")

    return host, port


def main() -> None:
    setup_logging("sandboxd", log_file=sandbox_home() / "logs" / "sandboxd.log")
    host, port = _host_port_from_base_url()
    uvicorn.run("sandboxd.app:app", host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()

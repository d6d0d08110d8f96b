"""Project root entry point for launching the worker and its web API."""

from __future__ import annotations

import os

from locsync.web import create_app


def main():
    app = create_app()
    port = int(os.environ.get("LOCSYNC_PORT", "5500"))
    # No reloader: it would start a second worker thread
    app.run(host="0.0.0.0", port=port, debug=False, use_reloader=False)


if __name__ == "__main__":
    main()

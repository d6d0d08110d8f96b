"""Web application package for locsync."""

from flask import Flask

from locsync.config import initialize_app


def create_app(worker=None, start_worker: bool = True) -> Flask:
    """
    Application factory for the worker API.

    Without an explicit worker, the configured TranslationWorker is created
    (and started unless `start_worker` is False).
    """
    if worker is None:
        initialize_app()
        from locsync.worker.service import TranslationWorker

        worker = TranslationWorker()
        if start_worker:
            worker.start()

    from .app import build_app  # Import here to avoid circular imports

    return build_app(worker)


__all__ = ["create_app"]

"""
Worker module - Reconciliation cycles and their progress reporting

This module provides:
- orchestrator: the phase-by-phase cycle driver
- state: live cycle counters and cancellation
- publisher: event fan-out to observers
- service: the background worker thread
"""

from locsync.worker.orchestrator import CycleOrchestrator, build_orchestrator
from locsync.worker.publisher import ProgressEvent, ProgressPublisher, Subscription
from locsync.worker.service import TranslationWorker
from locsync.worker.state import CancellationToken, CycleState

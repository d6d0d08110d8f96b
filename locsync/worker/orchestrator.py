"""
Cycle Orchestrator

Drives one reconciliation cycle through its phases:

    Idle -> Checks -> JsonBackendDataLoading -> CheckLanguageNames
         -> OldDictionaryLoading -> GenerateTranslationRequest -> Translate
         -> SaveTranslation -> MdFoldersChecks -> TranslateMd -> SaveMd -> Idle

Every phase is a coroutine. Translation units of all languages run as asyncio
tasks bounded by a semaphore; writes for one language are serialised by a
per-language lock. Configuration errors and resource exhaustion abort the
cycle, per-unit translation failures only count against their language.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from locsync.config import (
    load_config,
    load_provider_options,
    load_translation_settings,
    load_worker_options,
    resolve_path,
)
from locsync.core.diff import (
    UNTRANSLATED_FINGERPRINT,
    build_fingerprints,
    build_reconciled_dictionary,
    calculate_hash,
    compute_flat_diff,
    compute_tree_diff,
)
from locsync.core.models import (
    CYCLE_PHASES,
    CycleReport,
    DiffResult,
    DocumentNode,
    DocumentSnapshot,
    RowStatus,
    TranslationSettings,
    WorkerStatus,
)
from locsync.exceptions import (
    ConfigurationError,
    CycleCancelled,
    DictionaryNotFoundError,
    LocsyncError,
    ResourceExhaustedError,
    StoreError,
)
from locsync.language_codes import describe, is_known_language, is_valid_language_code
from locsync.logger import get_logger
from locsync.storage.chain import BackendChain, build_chain
from locsync.storage.documents import DocumentTreeStore
from locsync.storage.state import StateStore
from locsync.translation.client import TranslationClient, TranslationResult
from locsync.translation.providers import LibreTranslateProvider
from locsync.translation.retry import BackoffPolicy
from locsync.worker import publisher as events
from locsync.worker.publisher import ProgressPublisher
from locsync.worker.state import CancellationToken, CycleState

logger = get_logger(__name__)

# Language names in the metadata table are English
NAME_SOURCE_LANGUAGE = "en"


@dataclass
class CycleContext:
    """Data handed from one phase to the next within a cycle."""
    settings: Optional[TranslationSettings] = None
    canonical: Dict[str, str] = field(default_factory=dict)
    targets: List[str] = field(default_factory=list)
    existing: Dict[str, Optional[Dict[str, str]]] = field(default_factory=dict)
    fingerprints: Dict[str, Dict[str, str]] = field(default_factory=dict)
    diffs: Dict[str, DiffResult] = field(default_factory=dict)
    results: Dict[str, Dict[str, TranslationResult]] = field(default_factory=dict)
    # Markdown trees
    documents: Optional[DocumentTreeStore] = None
    md_targets: List[str] = field(default_factory=list)
    canonical_nodes: Dict[str, DocumentNode] = field(default_factory=dict)
    snapshots: Dict[str, Dict[str, DocumentSnapshot]] = field(default_factory=dict)
    md_diffs: Dict[str, DiffResult] = field(default_factory=dict)
    md_results: Dict[str, Dict[str, TranslationResult]] = field(default_factory=dict)


class CycleOrchestrator:
    """Runs reconciliation cycles and reports their progress."""

    def __init__(
        self,
        chain: BackendChain,
        client: TranslationClient,
        state_store: StateStore,
        publisher: Optional[ProgressPublisher] = None,
        settings_loader: Callable[[], TranslationSettings] = load_translation_settings,
        documents_factory: Callable[[List[Any]], DocumentTreeStore] = DocumentTreeStore,
        max_workers: int = 4,
        progress_batch_size: int = 10,
    ):
        self.chain = chain
        self.client = client
        self.state_store = state_store
        self.publisher = publisher or ProgressPublisher()
        self.settings_loader = settings_loader
        self.documents_factory = documents_factory
        self.max_workers = max(1, max_workers)
        self.progress_batch_size = max(1, progress_batch_size)

        self.state = CycleState()
        self.last_report: Optional[CycleReport] = None
        self._locks: Dict[str, asyncio.Lock] = {}
        self.publisher.set_counters_provider(lambda: self.state.snapshot())

        self._phases: Dict[WorkerStatus, Callable[[CycleContext, CancellationToken], Awaitable[None]]] = {
            WorkerStatus.CHECKS: self._checks,
            WorkerStatus.JSON_BACKEND_DATA_LOADING: self._load_backend_data,
            WorkerStatus.CHECK_LANGUAGE_NAMES: self._check_language_names,
            WorkerStatus.OLD_DICTIONARY_LOADING: self._load_old_dictionaries,
            WorkerStatus.GENERATE_TRANSLATION_REQUEST: self._generate_requests,
            WorkerStatus.TRANSLATE: self._translate,
            WorkerStatus.SAVE_TRANSLATION: self._save_translations,
            WorkerStatus.MD_FOLDERS_CHECKS: self._md_folders_checks,
            WorkerStatus.TRANSLATE_MD: self._translate_md,
            WorkerStatus.SAVE_MD: self._save_md,
        }

    @property
    def status(self) -> WorkerStatus:
        return self.state.phase

    # ------------------------------------------------------------------
    # Cycle driver
    # ------------------------------------------------------------------

    async def run_cycle(self, cancel_token: Optional[CancellationToken] = None) -> CycleReport:
        """Run one full cycle and return its report (never raises LocsyncError)."""
        token = cancel_token or CancellationToken()
        self._enter_idle()

        context = CycleContext()
        report = CycleReport(completed=False, started_at=time.time())
        phase = WorkerStatus.IDLE

        try:
            for phase in CYCLE_PHASES:
                token.raise_if_cancelled(phase.value)
                self._set_phase(phase)
                await self._phases[phase](context, token)
            self._count_remaining_languages()
            report.completed = True
        except CycleCancelled as e:
            logger.warning(f"Cycle cancelled in {phase.value}")
            report.cancelled = True
            report.error = str(e)
            self.publisher.publish(events.CYCLE_FAILED, message=str(e), phase=phase.value)
        except LocsyncError as e:
            logger.error(f"Cycle aborted in {phase.value}: {e}")
            report.error = str(e)
            self.publisher.publish(events.CYCLE_FAILED, message=str(e), phase=phase.value)
        except Exception as e:
            logger.exception(f"Unexpected error in {phase.value}")
            report.error = f"Unexpected error: {e}"
            self.publisher.publish(events.CYCLE_FAILED, message=report.error, phase=phase.value)
        finally:
            snapshot = self.state.snapshot()
            report.phase_reached = phase.value
            report.success_count = snapshot["success_count"]
            report.error_count = snapshot["error_count"]
            report.total_languages = snapshot["total_languages"]
            report.documents_translated = snapshot["documents_translated"]
            report.documents_failed = snapshot["documents_failed"]
            report.rows = snapshot["rows"]
            report.finished_at = time.time()
            self.last_report = report
            self._set_phase(WorkerStatus.IDLE)

        if report.completed:
            logger.info(
                f"Cycle finished in {report.elapsed_time:.1f}s: "
                f"{report.success_count} ok, {report.error_count} with errors, "
                f"{report.total_languages} languages"
            )
            self.publisher.publish(events.CYCLE_FINISHED, report=report.to_dict())
        return report

    def _enter_idle(self) -> None:
        """Start a new cycle: fresh counters, observers told to reset."""
        self.publisher.publish(events.NEW_CYCLE)
        self.state = CycleState()
        self._locks = {}
        self._set_phase(WorkerStatus.IDLE)

    def _set_phase(self, phase: WorkerStatus) -> None:
        self.state.set_phase(phase)
        logger.debug(f"Phase: {phase.value}")
        self.publisher.publish(events.STATUS_CHANGED, status=phase.value)

    def _language_lock(self, language: str) -> asyncio.Lock:
        if language not in self._locks:
            self._locks[language] = asyncio.Lock()
        return self._locks[language]

    def _publish_row(self, row: Optional[Dict[str, Any]]) -> None:
        if row is not None:
            self.publisher.publish(events.LANGUAGE_STATUS_CHANGED, row=row)

    def _record_language(self, language: str, success: bool) -> None:
        if self.state.record_language(language, success):
            self.publisher.publish(events.CYCLE_PROGRESS, **self.state.counters())

    def _count_remaining_languages(self) -> None:
        """Languages with nothing to do this cycle (default, ignored) count as success."""
        for descriptor in self.state.descriptors:
            if not self.state.is_counted(descriptor.code):
                self._record_language(descriptor.code, True)
                self._publish_row(self.state.update_row(descriptor.code, status=RowStatus.DONE))

    async def _run_units(self, coroutines: Iterable[Awaitable[None]]) -> None:
        """Run unit coroutines concurrently; on any failure cancel the rest."""
        tasks = [asyncio.ensure_future(coroutine) for coroutine in coroutines]
        if not tasks:
            return
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    async def _checks(self, context: CycleContext, token: CancellationToken) -> None:
        settings = self.settings_loader()
        default = settings.default_language

        if not is_valid_language_code(default) or not is_known_language(default):
            raise ConfigurationError(
                f"DefaultLanguage '{default}' is not a known language code",
                code="config_invalid",
                details={"option": "DefaultLanguage", "value": default},
            )
        if default in settings.ignored_for_json:
            raise ConfigurationError(
                f"DefaultLanguage '{default}' must not be listed in IgnoredForJson",
                code="config_invalid",
                details={"option": "IgnoredForJson"},
            )

        capabilities = self.chain.capabilities()
        if not capabilities.can_read:
            raise ConfigurationError("No readable dictionary store is configured", code="no_readable_store")
        if not capabilities.can_write:
            raise ResourceExhaustedError("No writable dictionary store is configured", code="no_writable_store")
        if capabilities.can_check_existence and not await self.chain.dictionary_exists(default):
            raise ConfigurationError(
                f"Default language dictionary '{default}' does not exist",
                code="canonical_missing",
                details={"language": default},
            )

        self.client.reset()
        context.settings = settings

    async def _load_backend_data(self, context: CycleContext, token: CancellationToken) -> None:
        settings = context.settings
        default = settings.default_language

        try:
            context.canonical = await self.chain.load_dictionary(default)
        except StoreError as e:
            raise ConfigurationError(
                f"Default language dictionary '{default}' could not be loaded: {e}",
                code="canonical_missing",
                details={"language": default},
            ) from e
        logger.info(f"Canonical dictionary '{default}': {len(context.canonical)} phrases")

        supported = await self.client.negotiate()
        if settings.languages:
            candidates = set(settings.languages)
        elif supported is not None:
            candidates = set(supported)
        else:
            candidates = set(await self.chain.list_available_languages())

        codes = set()
        for code in candidates | {default}:
            if is_valid_language_code(code):
                codes.add(code)
            else:
                logger.warning(f"Skipping invalid language code {code!r}")

        localized_names = await asyncio.to_thread(self.state_store.load_language_names)
        descriptors = [describe(code, localized_names) for code in sorted(codes)]
        self.state.freeze_languages(descriptors, default, ignored=settings.ignored_for_json)

        context.targets = [
            d.code for d in descriptors
            if d.code != default and d.code not in settings.ignored_for_json
        ]

        self.publisher.publish(events.RECEIVE_LANGUAGES, languages=[d.to_dict() for d in descriptors])
        self.publisher.publish(
            events.RECEIVE_TRANSLATION_SETTINGS,
            defaultLanguage=default,
            ignoredForJson=list(settings.ignored_for_json),
            ignoredForMd=list(settings.ignored_for_md),
        )
        for descriptor in descriptors:
            self._publish_row(self.state.row(descriptor.code))
        logger.info(f"{len(descriptors)} languages, {len(context.targets)} dictionary targets")

    async def _check_language_names(self, context: CycleContext, token: CancellationToken) -> None:
        missing = [d for d in self.state.descriptors if not d.native_name]
        self.state.start_name_translation(len(missing))
        found: Dict[str, str] = {}
        semaphore = asyncio.Semaphore(self.max_workers)

        async def translate_name(descriptor):
            async with semaphore:
                token.raise_if_cancelled("CheckLanguageNames")
                result = await self.client.translate(descriptor.name, NAME_SOURCE_LANGUAGE, descriptor.code)
            if result.translated and not result.failed:
                found[descriptor.code] = result.text
                total, translated, _ = self.state.record_name(True)
                self.publisher.publish(
                    events.LANGUAGE_NAME_TRANSLATION_CHANGED, totalCount=total, translatedCount=translated
                )
            else:
                _, _, errors = self.state.record_name(False)
                logger.warning(f"Could not translate the name of {descriptor.code}")
                self.publisher.publish(events.LANGUAGE_NAME_TRANSLATION_ERROR, errorCount=errors)

        await self._run_units(translate_name(d) for d in missing)

        if found:
            # Descriptors are frozen for this cycle; the names apply from the next one
            try:
                await self.state_store.save_language_names_async(found)
            except StoreError as e:
                logger.warning(f"Translated language names were not recorded: {e}")
        self.publisher.publish(events.LANGUAGE_NAMES_TRANSLATION_FINISHED)

    async def _load_old_dictionaries(self, context: CycleContext, token: CancellationToken) -> None:
        for language in context.targets:
            token.raise_if_cancelled("OldDictionaryLoading")
            try:
                context.existing[language] = await self.chain.load_dictionary(language)
                context.fingerprints[language] = await self.state_store.load_fingerprints_async(language)
            except DictionaryNotFoundError:
                logger.info(f"No dictionary for {language} yet, first sync")
                context.existing[language] = None
                context.fingerprints[language] = {}
            except StoreError as e:
                logger.warning(f"Dictionary for {language} is unusable ({e}), treating as first sync")
                context.existing[language] = None
                context.fingerprints[language] = {}

    async def _generate_requests(self, context: CycleContext, token: CancellationToken) -> None:
        default = context.settings.default_language
        self._publish_row(self.state.update_row(
            default, existing_phrases=len(context.canonical), status=RowStatus.DONE
        ))

        for language in context.targets:
            diff = compute_flat_diff(
                context.canonical,
                context.existing.get(language),
                context.fingerprints.get(language),
                language=language,
            )
            context.diffs[language] = diff
            context.results[language] = {}
            row = self.state.update_row(
                language,
                existing_phrases=diff.existing_phrases,
                to_add=len(diff.to_add),
                to_update=len(diff.to_update),
                to_remove=len(diff.to_remove),
                status=RowStatus.DONE if diff.is_empty else RowStatus.PENDING,
            )
            self._publish_row(row)
            if diff.is_empty:
                logger.debug(f"{language} is up to date")
                self._record_language(language, True)

    async def _translate(self, context: CycleContext, token: CancellationToken) -> None:
        default = context.settings.default_language
        semaphore = asyncio.Semaphore(self.max_workers)
        remaining = {language: len(diff.pending) for language, diff in context.diffs.items() if diff.pending}
        completed = dict.fromkeys(remaining, 0)

        for language in remaining:
            self._publish_row(self.state.update_row(language, status=RowStatus.IN_PROGRESS))

        async def translate_unit(language: str, key: str):
            async with semaphore:
                token.raise_if_cancelled("Translate")
                result = await self.client.translate(context.canonical[key], default, language)
            context.results[language][key] = result
            row = self.state.increment_row(
                language, translated=0 if result.failed else 1, failed=1 if result.failed else 0
            )
            completed[language] += 1
            done = completed[language]
            if done % self.progress_batch_size == 0 or done == remaining[language]:
                self._publish_row(row)

        total = sum(remaining.values())
        logger.info(f"Translating {total} phrases for {len(remaining)} languages")
        await self._run_units(
            translate_unit(language, key)
            for language in remaining
            for key in sorted(context.diffs[language].pending)
        )

    async def _save_translations(self, context: CycleContext, token: CancellationToken) -> None:
        for language in context.targets:
            token.raise_if_cancelled("SaveTranslation")
            diff = context.diffs[language]
            results = context.results.get(language, {})
            existing = context.existing.get(language)
            recorded = context.fingerprints.get(language, {})

            async with self._language_lock(language):
                fingerprints = build_fingerprints(context.canonical, existing, diff, recorded, results)
                try:
                    if diff.is_empty:
                        # Nothing to write but fingerprints of trusted values
                        if fingerprints != recorded:
                            await self.state_store.save_fingerprints_async(language, fingerprints)
                        continue
                    dictionary = build_reconciled_dictionary(context.canonical, existing, diff, results)
                    await self.chain.save_dictionary(language, dictionary)
                    await self.state_store.save_fingerprints_async(language, fingerprints)
                except StoreError as e:
                    logger.error(f"Failed to save {language}: {e}")
                    self._record_language(language, False)
                    self._publish_row(self.state.update_row(language, status=RowStatus.DONE))
                    continue

            failed = sum(1 for result in results.values() if result.failed)
            if failed:
                logger.warning(f"{language}: {failed} phrase(s) failed, will retry next cycle")
            self._record_language(language, failed == 0)
            self._publish_row(self.state.update_row(language, status=RowStatus.DONE))

    async def _md_folders_checks(self, context: CycleContext, token: CancellationToken) -> None:
        settings = context.settings
        if not settings.md_folders:
            logger.debug("No MdFolders configured, skipping documents")
            return

        default = settings.default_language
        context.documents = self.documents_factory([resolve_path(folder) for folder in settings.md_folders])
        try:
            context.canonical_nodes = await context.documents.scan_async(default, canonical=True)
        except StoreError as e:
            raise ConfigurationError(
                f"Canonical documents for '{default}' could not be read: {e}",
                code="canonical_missing",
                details=e.details,
            ) from e
        context.md_targets = [
            d.code for d in self.state.descriptors
            if d.code != default and d.code not in settings.ignored_for_md
        ]
        logger.info(f"{len(context.canonical_nodes)} canonical documents, {len(context.md_targets)} targets")

        for language in context.md_targets:
            token.raise_if_cancelled("MdFoldersChecks")
            existing_nodes = await context.documents.scan_async(language)
            snapshots = await self.state_store.load_snapshots_async(language)
            diff = compute_tree_diff(context.canonical_nodes, existing_nodes, snapshots, language=language)
            context.snapshots[language] = snapshots
            context.md_diffs[language] = diff
            context.md_results[language] = {}
            self._publish_row(self.state.update_row(language, documents_to_translate=len(diff.pending)))

    async def _translate_md(self, context: CycleContext, token: CancellationToken) -> None:
        if not context.md_diffs:
            return
        default = context.settings.default_language
        semaphore = asyncio.Semaphore(self.max_workers)

        async def translate_document(language: str, node_key: str):
            node = context.canonical_nodes[node_key]
            async with semaphore:
                token.raise_if_cancelled("TranslateMd")
                result = await self.client.translate(node.last_text, default, language)
            context.md_results[language][node_key] = result
            self.state.record_document(not result.failed)
            self._publish_row(self.state.increment_row(
                language,
                documents_translated=0 if result.failed else 1,
                documents_failed=1 if result.failed else 0,
            ))

        await self._run_units(
            translate_document(language, node_key)
            for language, diff in context.md_diffs.items()
            for node_key in sorted(diff.pending)
        )

    async def _save_md(self, context: CycleContext, token: CancellationToken) -> None:
        for language, diff in context.md_diffs.items():
            token.raise_if_cancelled("SaveMd")
            results = context.md_results.get(language, {})
            snapshots = dict(context.snapshots.get(language, {}))

            async with self._language_lock(language):
                try:
                    for node_key in sorted(diff.to_remove):
                        await context.documents.delete_async(node_key, language)
                        snapshots.pop(node_key, None)

                    for node_key, result in sorted(results.items()):
                        if result.failed:
                            continue
                        node = context.canonical_nodes[node_key]
                        await context.documents.write_async(node_key, language, result.text)
                        if result.translated:
                            snapshots[node_key] = DocumentSnapshot(calculate_hash(node.last_text), node.last_modified)
                        else:
                            # Source copy; both fields differ next cycle so it is retried
                            snapshots[node_key] = DocumentSnapshot(UNTRANSLATED_FINGERPRINT, 0.0)

                    # Trusted documents without a record get one
                    for node_key, node in context.canonical_nodes.items():
                        if node_key not in snapshots and node_key not in diff.pending:
                            snapshots[node_key] = DocumentSnapshot(calculate_hash(node.last_text), node.last_modified)

                    await self.state_store.save_snapshots_async(language, snapshots)
                except StoreError as e:
                    logger.error(f"Failed to save documents for {language}: {e}")
                    self._record_language(language, False)
                    continue

            if any(result.failed for result in results.values()):
                self._record_language(language, False)
            elif diff.pending or diff.to_remove:
                self._record_language(language, True)


def build_orchestrator(config: Dict[str, Any] = None, publisher: Optional[ProgressPublisher] = None) -> CycleOrchestrator:
    """Wire an orchestrator from the configuration file."""
    config = config if config is not None else load_config()
    provider_options = load_provider_options(config)
    worker_options = load_worker_options(config)
    state_path = resolve_path((config.get("Storage") or {}).get("StatePath", "state"))

    client = TranslationClient(
        LibreTranslateProvider(provider_options),
        max_retries=provider_options.retries_on_failure,
        policy=BackoffPolicy.from_options(provider_options),
        call_timeout=provider_options.timeout_seconds,
    )

    return CycleOrchestrator(
        chain=build_chain(config),
        client=client,
        state_store=StateStore(state_path),
        publisher=publisher,
        max_workers=worker_options.max_workers,
        progress_batch_size=worker_options.progress_batch_size,
    )

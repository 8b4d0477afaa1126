"""
Recognition pipeline: crop -> color + boundaries -> structure -> fuse -> validate.

Recoverable problems (bad region, a stage blowing up on a degenerate crop,
a low-quality candle) come back as failed ``RecognitionResult`` objects.
Only precondition failures (no image, no regions) raise.
"""

import logging
import queue
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from .config import RecognitionConfig
from .detectors.boundary import extract
from .detectors.color import classify
from .detectors.regions import locate
from .errors import InvalidInputError, StageError
from .imaging import clip_region, ensure_bgr
from .logger import RegionLoggerAdapter
from .sources import ImageSource
from .structure import analyze
from .types import ErrorKind, KLineInfo, RecognitionResult, Region
from .validators import validate

logger = logging.getLogger(__name__)

Corrector = Callable[[list[RecognitionResult]], list[RecognitionResult]]


def _run_stage(stage: str, fn, *args):
    try:
        return fn(*args)
    except MemoryError:
        raise
    except Exception as e:
        raise StageError(stage, e) from e


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


def _failure(
    region: Region | None, kind: ErrorKind, message: str, start: float, **extra
) -> RecognitionResult:
    return RecognitionResult(
        ok=False,
        region=region,
        error=message,
        error_kind=kind,
        elapsed_ms=_elapsed_ms(start),
        **extra,
    )


def fuse_confidence(
    color_confidence: float, structure_confidence: float, color_weight: float
) -> float:
    fused = color_weight * color_confidence + (1.0 - color_weight) * structure_confidence
    return max(0.0, min(1.0, fused))


def _fuse(boundaries, color, structure, config: RecognitionConfig) -> KLineInfo:
    confidence = fuse_confidence(color.confidence, structure.confidence, config.color_weight)
    return KLineInfo(
        boundaries=boundaries, color=color, structure=structure, confidence=confidence
    )


class RecognitionPipeline:
    """
    Composes the detectors into single, batch and auto-detect recognition.

    Parameters
    ----------
    source : ImageSource | None
        Capture collaborator used by the ``*_from_source`` methods.
    corrector : Callable | None
        Optional cross-candle correction applied after auto-detect
        post-processing when ``config.post.apply_correction`` is set.
    locator, classifier, extractor, analyzer : callables
        Stage implementations; replaceable for testing or alternative
        detectors.
    """

    def __init__(
        self,
        source: ImageSource | None = None,
        corrector: Corrector | None = None,
        *,
        locator=locate,
        classifier=classify,
        extractor=extract,
        analyzer=analyze,
    ):
        self.source = source
        self.corrector = corrector
        self.locator = locator
        self.classifier = classifier
        self.extractor = extractor
        self.analyzer = analyzer

    # ---------- Single ----------
    def recognize(
        self, image: np.ndarray, region: Region, config: RecognitionConfig | None = None
    ) -> RecognitionResult:
        """
        Recognize the candle inside ``region``.

        Parameters
        ----------
        image : np.ndarray
            BGR (or gray/BGRA) uint8 pixel buffer; never modified.
        region : Region
            Candle box in image coordinates; clipped to the image.
        config : RecognitionConfig | None
            Thresholds; defaults when omitted.

        Returns
        -------
        RecognitionResult
            ``ok`` with a KLineInfo, or a failure with an ErrorKind.
        """
        if region is None:
            raise InvalidInputError("region is required")
        image = ensure_bgr(image)
        return self._recognize_one(image, region, config or RecognitionConfig())

    def _recognize_one(
        self, image: np.ndarray, region: Region, config: RecognitionConfig
    ) -> RecognitionResult:
        start = time.perf_counter()
        log = RegionLoggerAdapter(logger, region if isinstance(region, Region) else None)

        if not isinstance(region, Region):
            return _failure(None, ErrorKind.INVALID_INPUT, f"not a region: {region!r}", start)
        clipped = clip_region(image, region)
        if clipped is None:
            h, w = image.shape[:2]
            log.debug("region outside image %dx%d", w, h)
            return _failure(
                region,
                ErrorKind.INVALID_INPUT,
                f"region {region.to_xyxy()} does not intersect image of size {w}x{h}",
                start,
            )

        try:
            return self._run(image, region, clipped, config, start, log)
        except StageError as e:
            log.exception("recognition failed in %s stage", e.stage)
            return _failure(region, ErrorKind.STAGE_FAILURE, str(e), start)

    def _run(self, image, region, clipped, config, start, log) -> RecognitionResult:
        color, boundaries = self._color_and_boundaries(image, clipped, config)
        structure = _run_stage("structure", self.analyzer, boundaries, config)

        info = _run_stage("fuse", _fuse, boundaries, color, structure, config)
        validation = _run_stage("validate", validate, info, config)
        log.debug("confidence=%.2f valid=%s", info.confidence, validation.is_valid)
        if not validation.is_valid:
            return _failure(
                region,
                ErrorKind.VALIDATION_FAILURE,
                "validation failed: " + ", ".join(validation.errors),
                start,
                kline=info,
                validation_errors=validation.errors,
            )
        return RecognitionResult(ok=True, region=region, kline=info, elapsed_ms=_elapsed_ms(start))

    def _color_and_boundaries(self, image, clipped, config):
        if config.parallel.concurrent_stages:
            # both stages only read the image, so no locking is needed
            with ThreadPoolExecutor(max_workers=2, thread_name_prefix="kline-stage") as pool:
                color_f = pool.submit(_run_stage, "color", self.classifier, image, clipped, config)
                bounds_f = pool.submit(
                    _run_stage, "boundary", self.extractor, image, clipped, config
                )
                return color_f.result(), bounds_f.result()
        color = _run_stage("color", self.classifier, image, clipped, config)
        boundaries = _run_stage("boundary", self.extractor, image, clipped, config)
        return color, boundaries

    # ---------- Batch ----------
    def recognize_batch(
        self,
        image: np.ndarray,
        regions: Sequence[Region],
        config: RecognitionConfig | None = None,
        cancel_event: threading.Event | None = None,
        progress: "queue.Queue | None" = None,
    ) -> list[RecognitionResult]:
        """
        Recognize every region; results keep the order of ``regions``.

        ``cancel_event`` is checked before each region; regions not started
        once it is set come back as CANCELLED. ``progress`` receives
        ``(index, result)`` tuples as regions finish.
        """
        if regions is None or len(regions) == 0:
            raise InvalidInputError("region list must not be empty")
        image = ensure_bgr(image)
        config = config or RecognitionConfig()
        regions = list(regions)
        start = time.perf_counter()

        def unit(i: int) -> RecognitionResult:
            if cancel_event is not None and cancel_event.is_set():
                result = _failure(regions[i], ErrorKind.CANCELLED, "cancelled", time.perf_counter())
            else:
                result = self._recognize_one(image, regions[i], config)
            if progress is not None:
                progress.put((i, result))
            return result

        par = config.parallel
        if par.enabled and len(regions) > par.threshold:
            with ThreadPoolExecutor(
                max_workers=par.max_workers, thread_name_prefix="kline"
            ) as pool:
                results = list(pool.map(unit, range(len(regions))))
        else:
            results = [unit(i) for i in range(len(regions))]

        ok = sum(1 for r in results if r.ok)
        logger.info(
            "batch recognition done: %d/%d ok in %.1fms", ok, len(results), _elapsed_ms(start)
        )
        return results

    # ---------- Auto-detect ----------
    def auto_detect_and_recognize(
        self,
        image: np.ndarray,
        config: RecognitionConfig | None = None,
        cancel_event: threading.Event | None = None,
    ) -> list[RecognitionResult]:
        """Locate candles in a full chart, recognize each, then post-process."""
        image = ensure_bgr(image)
        config = config or RecognitionConfig()

        regions = _run_stage("locate", self.locator, image, config)
        if not regions:
            logger.warning("no candle regions found")
            return []
        logger.info("located %d candle regions", len(regions))

        results = self.recognize_batch(image, regions, config, cancel_event=cancel_event)
        if config.post.enabled:
            results = self.post_process(results, config)
        return results

    def post_process(
        self, results: list[RecognitionResult], config: RecognitionConfig
    ) -> list[RecognitionResult]:
        post = config.post
        if post.filter_low_confidence:
            results = [
                r for r in results if r.ok and r.kline.confidence >= config.min_confidence
            ]
        if post.sort_by_x:
            results = sorted(results, key=_result_x)
        if post.apply_correction and self.corrector is not None:
            results = list(self.corrector(results))
        return results

    # ---------- Source-backed ----------
    def _capture(self) -> np.ndarray:
        if self.source is None:
            raise InvalidInputError("no image source configured")
        return self.source.capture()

    def recognize_from_source(
        self, region: Region, config: RecognitionConfig | None = None
    ) -> RecognitionResult:
        return self.recognize(self._capture(), region, config)

    def auto_detect_from_source(
        self, config: RecognitionConfig | None = None
    ) -> list[RecognitionResult]:
        return self.auto_detect_and_recognize(self._capture(), config)


def _result_x(r: RecognitionResult) -> int:
    if r.kline is not None and r.kline.boundaries.full is not None:
        return r.kline.boundaries.full.x
    return r.region.x if r.region is not None else 0


_default_pipeline = RecognitionPipeline()


def recognize(image, region: Region, config: RecognitionConfig | None = None) -> RecognitionResult:
    return _default_pipeline.recognize(image, region, config)


def recognize_batch(image, regions, config: RecognitionConfig | None = None, **kwargs):
    return _default_pipeline.recognize_batch(image, regions, config, **kwargs)


def auto_detect_and_recognize(image, config: RecognitionConfig | None = None, **kwargs):
    return _default_pipeline.auto_detect_and_recognize(image, config, **kwargs)


if __name__ == "__main__":
    from .imaging import read_image

    for res in auto_detect_and_recognize(read_image("img/chart.png")):
        print(res.to_dict())

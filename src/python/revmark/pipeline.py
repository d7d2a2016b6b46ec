import json
import logging
import time
import traceback
from typing import Dict, Optional, Tuple

from .annotate import annotate
from .config import AnnotationSettings
from .detections import load_detections
from .docx_io import DocxModel
from .evaluate import evaluate_detections
from .flatten import FlatView
from .masker import mask_document
from .report import write_report

logger = logging.getLogger(__name__)

MODES = ("annotate", "mask", "evaluate")


class AnnotationError(Exception):
    """Error class carrying a machine-readable reason for a failed run."""
    def __init__(self, message: str, error_code: str, technical_details: str = "", original_error: Exception = None):
        super().__init__(message)
        self.error_code = error_code
        self.technical_details = technical_details
        self.original_error = original_error


def _log_annotation_error(error: AnnotationError, debug: bool = False) -> None:
    logger.error("[%s] %s", error.error_code, error)
    if error.technical_details:
        logger.error("Details: %s", error.technical_details)
    if error.original_error and debug:
        logger.debug("".join(traceback.format_exception(error.original_error)))


def _write_failure_report(report_path: Optional[str], input_path: str, error: AnnotationError) -> None:
    """Persist a minimal error report so callers can surface context."""
    if not report_path:
        return
    payload = {
        "status": "error",
        "input": input_path,
        "error_code": error.error_code,
        "message": str(error),
        "technical_details": error.technical_details,
    }
    try:
        with open(report_path, "w", encoding="utf-8") as fh:
            json.dump(payload, fh, indent=2)
    except OSError as report_exc:
        logger.error("Failed to write error report: %s", report_exc)


def run_pipeline(
    input_path: str,
    detections_path: str,
    output_path: Optional[str],
    report_path: Optional[str],
    mode: str = "annotate",
    settings: Optional[AnnotationSettings] = None,
    debug: bool = False,
) -> Tuple[int, Dict[str, float]]:
    """
    Load a DOCX and a detections file, run one mode, save and report.

    Returns (exit_code, phase_timings). Exit code 0 is success, 2 a known
    failure, 3 an unexpected one.
    """
    settings = settings or AnnotationSettings()
    phase_timings: Dict[str, float] = {}

    def timed(phase_name: str):
        class Timer:
            def __enter__(self):
                self.start = time.perf_counter()
                return self
            def __exit__(self, *args):
                phase_timings[phase_name] = time.perf_counter() - self.start
        return Timer()

    try:
        try:
            with timed("DOCX_LOAD"):
                dm = DocxModel.load(input_path)
            logger.debug("Loaded %s: %d paragraphs", input_path, len(dm.document.paragraphs))
        except Exception as e:
            raise AnnotationError(
                message="Failed to load document file",
                error_code="DOC_LOAD_FAILED",
                technical_details=f"Input path: {input_path}, Error: {str(e)}",
                original_error=e
            )

        try:
            with timed("DETECTIONS_LOAD"):
                detections = load_detections(detections_path)
            logger.debug("Loaded %d detections from %s", len(detections), detections_path)
        except Exception as e:
            raise AnnotationError(
                message="Failed to load detections file",
                error_code="DETECTIONS_LOAD_FAILED",
                technical_details=f"Detections path: {detections_path}, Error: {str(e)}",
                original_error=e
            )

        try:
            with timed("PROCESS"):
                extra = {}
                if mode == "evaluate":
                    view = FlatView(dm.document, settings.join_policy)
                    evaluation = evaluate_detections(
                        view.paragraph_separated_text(), detections).to_dict(detections)
                    entries = evaluation["detections"]
                    extra["duplicates"] = evaluation["duplicates"]
                elif mode == "mask":
                    masked = mask_document(dm.document, detections, settings)
                    entries = [
                        {**d.to_dict(), "status": "not_found" if d in masked.not_found else "masked"}
                        for d in detections
                    ]
                    extra["ranges"] = [{"start": s, "end": e} for s, e in masked.ranges]
                    extra["skipped_positions"] = [g.position for g in masked.gaps]
                else:
                    annotated = annotate(dm.document, detections, settings)
                    entries = [o.to_dict() for o in annotated.outcomes]
        except Exception as e:
            raise AnnotationError(
                message=f"Processing failed in {mode} mode",
                error_code="ANNOTATION_FAILED",
                technical_details=f"Error: {str(e)}",
                original_error=e
            )

        try:
            with timed("DOCX_SAVE"):
                if output_path and mode != "evaluate":
                    dm.save(output_path)
                if report_path:
                    write_report(report_path, input_path, mode, entries,
                                 join_policy=settings.join_policy.value, **extra)
        except Exception as e:
            raise AnnotationError(
                message="Failed to save output",
                error_code="OUTPUT_SAVE_FAILED",
                technical_details=f"Output path: {output_path}, Report path: {report_path}, Error: {str(e)}",
                original_error=e
            )
        return (0, phase_timings)
    except AnnotationError as err:
        _log_annotation_error(err, debug=debug)
        _write_failure_report(report_path, input_path, err)
        return (2, phase_timings)
    except Exception as err:
        wrapped = AnnotationError(
            message="Unexpected error during annotation",
            error_code="UNEXPECTED_FAILURE",
            technical_details=str(err),
            original_error=err,
        )
        _log_annotation_error(wrapped, debug=debug)
        _write_failure_report(report_path, input_path, wrapped)
        return (3, phase_timings)

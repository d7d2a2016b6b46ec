"""
Unified runner for revmark.

Single entry point for CLI and library callers. Provides consistent
parameter validation, logging and result reporting for every mode.
"""

import json
import logging
import os
import sys
import traceback
from datetime import datetime
from typing import Any, Dict, Optional

from .config import AnnotationSettings
from .pipeline import MODES, run_pipeline


def setup_logging(debug: bool = False, log_path: Optional[str] = None) -> None:
    """Setup unified logging configuration."""
    level = logging.DEBUG if debug else logging.INFO
    format_str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.StreamHandler(sys.stderr),
            logging.FileHandler(log_path) if log_path else logging.NullHandler()
        ]
    )

    logger = logging.getLogger(__name__)
    logger.debug("revmark logging initialized")


def validate_parameters(
    input_path: str,
    detections_path: str,
    output_path: Optional[str],
    report_path: Optional[str],
    mode: str = "annotate",
) -> None:
    """Validate input parameters before processing."""
    logger = logging.getLogger(__name__)

    if not os.path.exists(input_path):
        raise ValueError(f"Input file not found: {input_path}")
    if not input_path.lower().endswith('.docx'):
        raise ValueError(f"Input file must be a DOCX file: {input_path}")

    if not os.path.exists(detections_path):
        raise ValueError(f"Detections file not found: {detections_path}")
    if not detections_path.lower().endswith('.json'):
        raise ValueError(f"Detections file must be a JSON file: {detections_path}")

    if mode not in MODES:
        raise ValueError(f"Invalid mode '{mode}'. Valid modes: {list(MODES)}")
    if mode != "evaluate" and not output_path:
        raise ValueError(f"Mode '{mode}' requires an output path")
    if mode == "evaluate" and not report_path:
        raise ValueError("Mode 'evaluate' requires a report path")

    # Create output directories
    for path in (output_path, report_path):
        if path and os.path.dirname(path):
            os.makedirs(os.path.dirname(path), exist_ok=True)

    logger.debug(f"Parameters validated: input={input_path}, detections={detections_path}, output={output_path}, mode={mode}")


def run_annotation(
    input_path: str,
    detections_path: str,
    output_path: Optional[str] = None,
    report_path: Optional[str] = None,
    mode: str = "annotate",
    settings: Optional[AnnotationSettings] = None,
    debug: bool = False,
    log_path: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Unified entry point.

    Args:
        input_path: Path to input DOCX file
        detections_path: Path to detections JSON ({"pii": [{type, value}]})
        output_path: Path for the output DOCX (not used by 'evaluate')
        report_path: Optional path for the JSON report
        mode: 'annotate', 'mask' or 'evaluate'
        settings: Join policy, boundary checking and colors
        debug: Enable debug logging
        log_path: Optional log file path

    Returns:
        Dictionary with processing results and metadata
    """
    logger = logging.getLogger(__name__)
    settings = settings or AnnotationSettings()
    mode = (mode or "annotate").strip().lower()

    setup_logging(debug, log_path)

    operation_id = datetime.now().strftime("%Y%m%d_%H%M%S")
    logger.info(f"Starting {mode} operation {operation_id}")
    logger.info(f"Input: {input_path}")
    logger.info(f"Detections: {detections_path}")
    logger.info(f"Join policy: {settings.join_policy.value}, token boundary: {settings.require_token_boundary}")

    try:
        validate_parameters(input_path, detections_path, output_path, report_path, mode)

        start_time = datetime.now()
        exit_code, phase_timings = run_pipeline(
            input_path,
            detections_path,
            output_path,
            report_path,
            mode=mode,
            settings=settings,
            debug=debug,
        )
        duration = (datetime.now() - start_time).total_seconds()

        if exit_code != 0:
            failure = RuntimeError(f"Pipeline failed with exit code {exit_code}")
            failure.exit_code = exit_code
            raise failure

        logger.info(f"Completed successfully in {duration:.2f} seconds")
        summary = {}
        if report_path and os.path.exists(report_path):
            with open(report_path, 'r', encoding='utf-8') as f:
                summary = _summarize(json.load(f), mode)

        return {
            'success': True,
            'exit_code': 0,
            'duration': duration,
            'input_file': input_path,
            'output_file': output_path,
            'report_file': report_path,
            'mode': mode,
            'operation_id': operation_id,
            'phase_timings': phase_timings,
            **summary,
        }

    except Exception as e:
        logger.error(f"{mode.capitalize()} failed: {str(e)}")
        logger.debug(f"Full traceback: {traceback.format_exc()}")

        return {
            'success': False,
            'exit_code': getattr(e, 'exit_code', 1),
            'error': str(e),
            'input_file': input_path,
            'mode': mode,
            'operation_id': operation_id,
            'duration': (datetime.now() - start_time).total_seconds() if 'start_time' in locals() else 0
        }


def _summarize(report: Dict[str, Any], mode: str) -> Dict[str, int]:
    detections = report.get('detections') or []
    not_found = sum(1 for d in detections if d.get('status') == 'not_found')
    if mode == "annotate":
        return {
            'styled_count': sum(len(d.get('styled', [])) for d in detections),
            'not_found_count': not_found,
        }
    if mode == "mask":
        return {'masked_count': len(report.get('ranges', [])), 'not_found_count': not_found}
    if mode == "evaluate":
        return {
            'matched_count': sum(1 for d in detections if d.get('status') in ('exact', 'partial')),
            'not_found_count': not_found,
        }
    return {}

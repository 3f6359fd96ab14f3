"""JSON report persistence."""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

import aiofiles

from ..image.result import AnalysisResult


def render_report(result: AnalysisResult, indent: Optional[int] = 2) -> str:
    """Serialize an analysis result to a JSON document."""
    return json.dumps(result.to_dict(), indent=indent)


async def save_report(
    result: AnalysisResult, path: Union[str, Path], indent: int = 2
) -> Path:
    """Write the JSON report for an analysis result.

    Args:
        result: Completed analysis
        path: Destination file; parent directories must exist
        indent: JSON indentation

    Returns:
        Path of the written report
    """
    report_path = Path(path)
    async with aiofiles.open(report_path, "w", encoding="utf-8") as f:
        await f.write(render_report(result, indent))
    return report_path


async def load_report(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a JSON report written by ``save_report``.

    Raises:
        ValueError: If the file does not hold a JSON object
    """
    async with aiofiles.open(Path(path), "r", encoding="utf-8") as f:
        content = await f.read()
    data = json.loads(content)
    if not isinstance(data, dict):
        raise ValueError(f"Report {path} is not a JSON object")
    return data

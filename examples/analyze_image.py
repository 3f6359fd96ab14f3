"""Example: report wasted layer storage for a saved image archive.

Usage:
    docker save nginx:alpine -o nginx.tar
    python examples/analyze_image.py nginx.tar [report.json]
"""

import asyncio
import logging
import sys

# Add parent directory to path
sys.path.insert(0, "src")

from image_efficiency import (
    AnalysisEvent,
    EventKind,
    ImageAnalysisError,
    analyze_image,
    save_report,
)
from image_efficiency.utils import format_bytes, format_percent

# Set up logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def on_progress(event: AnalysisEvent) -> None:
    if event.kind == EventKind.LAYER_SCANNED:
        logger.info(f"Scanned {event.layer_name} ({event.records} entries)")
    elif event.kind == EventKind.LAYER_DONE:
        logger.info(f"Built tree {event.layer_number}: {event.layer_name}")


async def main(archive: str, report_path: str = "") -> int:
    try:
        result = await analyze_image(archive, timeout=300, progress_callback=on_progress)
    except ImageAnalysisError as e:
        logger.error(f"Analysis failed: {e}")
        return 1

    print("Layers:")
    for layer in result.layers:
        print(f"  {layer}")

    print()
    print(f"Total image size:   {format_bytes(result.size_bytes)}")
    print(f"Potential wasted:   {format_bytes(result.wasted_bytes)}")
    print(f"Wasted user space:  {format_percent(result.wasted_user_percent)}")
    print(f"Efficiency score:   {format_percent(result.efficiency_score)}")

    if result.duplicate_paths:
        print()
        print("Largest duplicated paths:")
        for duplicate in result.duplicate_paths[:10]:
            print(
                f"  {len(duplicate.occurrences):>3}x "
                f"{format_bytes(duplicate.cumulative_wasted_size):>9}  {duplicate.path}"
            )

    if report_path:
        saved = await save_report(result, report_path)
        logger.info(f"Report written to {saved}")
    return 0


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(2)
    sys.exit(asyncio.run(main(*sys.argv[1:3])))

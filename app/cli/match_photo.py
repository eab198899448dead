"""CLI tool for matching the faces in a registered photo."""
import argparse
import asyncio
import sys
from pathlib import Path
from typing import Optional

from app.core.container import ServiceContainer
from app.core.exceptions import FaceMatchingError
from app.core.logging import bind_request_context, get_logger, setup_logging
from app.domain.value_objects.recognition import PhotoMatchReport

logger = get_logger(__name__)


async def match_photo(cont: ServiceContainer, photo_id: str, image_path: str) -> PhotoMatchReport:
    """
    Run face matching for a photo from a local image file.

    The run is trusted: no caller scope is applied.

    Args:
        cont: Initialized service container
        photo_id: Registered photo the image belongs to
        image_path: Path to the image file

    Returns:
        PhotoMatchReport of the run
    """
    image_bytes = Path(image_path).read_bytes()
    report = await cont.photo_matching_service.process_photo(photo_id, image_bytes)

    logger.info(
        report.message,
        photo_id=photo_id,
        detections_count=report.detections_count,
        unmatched_count=report.unmatched_count
    )
    for face_match in report.matches:
        logger.info(
            "Face match",
            match_id=face_match.id,
            person_id=face_match.person_id,
            confidence=f"{face_match.confidence:.3f}",
            bounding_box=face_match.bounding_box.model_dump()
        )
    for failure in report.failures:
        logger.warning(
            "Detection failed",
            detection_index=failure.detection_index,
            code=failure.code,
            error=failure.message
        )
    return report


async def run(
    photo_id: str,
    image_path: str,
    database_url: Optional[str] = None,
    cont: Optional[ServiceContainer] = None,
    print_json: bool = False,
) -> int:
    """
    Initialize services if needed, match the photo and return an exit code.

    Args:
        photo_id: Registered photo the image belongs to
        image_path: Path to the image file
        database_url: Overrides the configured database
        cont: Already initialized container; one is created and cleaned up otherwise
        print_json: Print the report as JSON on stdout

    Returns:
        0 on success, 1 on failure
    """
    bind_request_context(photo_id=photo_id)
    if not Path(image_path).is_file():
        logger.error("Image file not found", path=image_path)
        return 1

    owns_container = cont is None
    if cont is None:
        cont = ServiceContainer()
        await cont.initialize(database_url=database_url)

    try:
        report = await match_photo(cont, photo_id, image_path)
    except FaceMatchingError as e:
        logger.error("Photo matching failed", photo_id=photo_id, error_code=e.code, error=e.message)
        return 1
    finally:
        if owns_container:
            await cont.cleanup()

    if print_json:
        print(report.model_dump_json(indent=2))
    return 1 if report.failures else 0


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Match the faces in a photo against enrolled persons")
    parser.add_argument("image_path", help="Path to the image file")
    parser.add_argument("--photo-id", required=True, help="Id of the registered photo")
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    parser.add_argument("--json", action="store_true", help="Print the match report as JSON")
    args = parser.parse_args()

    # stdout is reserved for the JSON report
    setup_logging(stream=sys.stderr)
    sys.exit(asyncio.run(run(args.photo_id, args.image_path, args.database_url, print_json=args.json)))


if __name__ == "__main__":
    main()

"""Tests for the match_photo command-line tool."""
from app.cli.match_photo import run
from tests.conftest import PERSON, PHOTO, detection, enroll_directly


async def test_run_records_matches(container, extractor, database, tmp_path):
    """Should process a local image for a registered photo and exit cleanly."""
    await enroll_directly(database, PERSON, [0.0, 0.0])
    extractor.detections = [detection([0.0, 0.0])]
    image = tmp_path / "photo.jpg"
    image.write_bytes(b"fake jpeg")

    exit_code = await run(PHOTO, str(image), cont=container)

    assert exit_code == 0
    assert await container.match_registry.photo_match_count(PHOTO) == 1


async def test_run_missing_file(container, tmp_path):
    assert await run(PHOTO, str(tmp_path / "missing.jpg"), cont=container) == 1


async def test_run_unknown_photo(container, tmp_path):
    image = tmp_path / "photo.jpg"
    image.write_bytes(b"fake jpeg")

    assert await run("missing", str(image), cont=container) == 1


async def test_run_prints_json(container, extractor, tmp_path, capsys):
    image = tmp_path / "photo.jpg"
    image.write_bytes(b"fake jpeg")

    exit_code = await run(PHOTO, str(image), cont=container, print_json=True)

    assert exit_code == 0
    assert '"photo_id": "ph1"' in capsys.readouterr().out

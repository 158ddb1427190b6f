import datetime

import pytest

from conftest import make_user
from core.models import GalleryImage, Identity, StorageObject
from services.api_gateway.app.container import AppContainer
from services.ui_service.app.views import (
    empty_listing_hint, file_rows, gallery_items, identity_markdown, image_details, listing_summary,
    read_local_file, save_download,
)


def test_read_local_file_guesses_type(tmp_path):
    path = tmp_path / "photo.png"
    path.write_bytes(b"\x89PNG")
    local = read_local_file(str(path))
    assert local.name == "photo.png"
    assert local.content_type == "image/png"
    assert local.size == 4
    assert read_local_file(None) is None

def test_save_download_copies_into_folder(tmp_path):
    source = tmp_path / "tmp123.pdf"
    source.write_bytes(b"pdf")
    target = save_download(str(source), "docs/report.pdf", download_dir=str(tmp_path / "downloads"))
    assert target.endswith("report.pdf")
    assert open(target, "rb").read() == b"pdf"

def test_file_rows():
    created = datetime.datetime(2024, 3, 9, tzinfo=datetime.timezone.utc)
    rows = file_rows([StorageObject(name="a.png", size=2048, created_at=created), StorageObject(name="x")])
    assert rows == [["a.png", "2 KB", "2024-03-09", "images"], ["x", "Unknown size", "Unknown", "other"]]

def test_listing_summary():
    assert listing_summary(1, 2, False) == "1 of 2 files"
    assert "first page" in listing_summary(100, 100, True)
    assert listing_summary(0, 0, False, "Error fetching files: boom") == "❌ Error fetching files: boom"

def test_empty_listing_hint_depends_on_filters():
    assert "match your filters" in empty_listing_hint(True)
    assert "Upload your first file" in empty_listing_hint(False)

def test_identity_markdown():
    assert "Sign in" in identity_markdown(None)
    text = identity_markdown(Identity.from_user(make_user()))
    assert "ada@example.com" in text
    assert "2024-05-01 12:30" in text

def test_gallery_helpers():
    image = GalleryImage(name="cat.png", url="https://cdn.test/gallery/cat.png", size=2048)
    assert gallery_items([image]) == [("https://cdn.test/gallery/cat.png", "cat.png")]
    assert "2.0 KB" in image_details(image)
    assert image_details(None) == ""

def test_build_ui_smoke(clients, config):
    gr = pytest.importorskip("gradio")
    from services.ui_service.app.main import build_ui
    demo = build_ui(AppContainer(clients, config=config))
    assert isinstance(demo, gr.Blocks)

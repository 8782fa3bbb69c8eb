import numpy as np

from overlay.models import BoxConvention, CapturedFrame, Detection
from overlay.renderer import BOX_COLOR, OverlayRenderer, RenderMode

from conftest import RecordingUI, cube_frame, encode_jpeg


def test_missing_container_leaves_no_surface(caplog):
    renderer = OverlayRenderer(RecordingUI(containers=()))
    assert renderer.init_surface("detectionsView") is None
    assert "not found" in caplog.text
    # Rendering without a surface is a logged no-op
    assert renderer.render_frame(cube_frame()) is None
    assert "not initialized" in caplog.text


def test_init_surface_starts_empty(ui):
    renderer = OverlayRenderer(ui)
    assert renderer.surface is None
    surface = renderer.init_surface("detectionsView")
    assert surface is not None
    assert (surface.width, surface.height) == (0, 0)
    assert ui.mounted == ["detectionsView"]
    assert renderer.encode_jpeg() is None


def test_init_surface_replaces_previous(ui):
    renderer = OverlayRenderer(ui)
    first = renderer.init_surface("detectionsView")
    renderer.render_frame(cube_frame())
    second = renderer.init_surface("detectionsView")
    assert second is not first
    assert (second.width, second.height) == (0, 0)
    assert renderer.last_overlays == []


def test_end_to_end_first_frame_without_image(ui):
    renderer = OverlayRenderer(ui)
    renderer.init_surface("detectionsView")

    assert renderer.render_frame(CapturedFrame(image=None), ui) is None
    assert (renderer.surface.width, renderer.surface.height) == (0, 0)
    assert ui.readout_clears == 0

    overlays = renderer.render_frame(cube_frame(), ui)
    assert (renderer.surface.width, renderer.surface.height) == (640, 480)
    assert len(overlays) == 1
    box = overlays[0]
    assert box.rect.as_int() == (64, 48, 320, 240)
    assert box.label == "cube (92.0%)"
    assert box.anchor == (68, 44)
    assert box.chip == (64, 28, box.chip[2], 48)
    assert ui.readout == ["[x: 68, y: 44]"]

    pixels = renderer.snapshot()
    # left edge of the stroked box
    assert tuple(int(c) for c in pixels[150, 64]) == BOX_COLOR
    # interior keeps the image
    assert abs(int(pixels[150, 200][0]) - 128) < 8


def test_frame_without_image_keeps_surface_identical(ui):
    renderer = OverlayRenderer(ui)
    renderer.init_surface("detectionsView")
    renderer.render_frame(cube_frame(), ui)
    before = renderer.snapshot()

    assert renderer.render_frame(CapturedFrame(image=None, detections=[]), ui) is None
    assert np.array_equal(renderer.snapshot(), before)
    assert ui.readout == ["[x: 68, y: 44]"]


def test_undecodable_image_is_skipped(ui, caplog):
    renderer = OverlayRenderer(ui)
    renderer.init_surface("detectionsView")
    renderer.render_frame(cube_frame(), ui)
    before = renderer.snapshot()

    assert renderer.render_frame(CapturedFrame(image=b"not a jpeg"), ui) is None
    assert np.array_equal(renderer.snapshot(), before)
    assert "Could not decode" in caplog.text


def test_surface_follows_frame_size_in_poll_mode(ui):
    renderer = OverlayRenderer(ui)
    renderer.init_surface("detectionsView")
    renderer.render_frame(CapturedFrame(image=encode_jpeg(320, 240)))
    assert (renderer.surface.width, renderer.surface.height) == (320, 240)
    renderer.render_frame(CapturedFrame(image=encode_jpeg(640, 480)))
    assert (renderer.surface.width, renderer.surface.height) == (640, 480)


def test_readout_replaced_each_frame(ui):
    renderer = OverlayRenderer(ui)
    renderer.init_surface("detectionsView")
    frame = CapturedFrame(
        image=encode_jpeg(),
        detections=[
            Detection("a", 0.5, 10, 40, 50, 80),
            Detection("b", 0.6, 100, 140, 150, 180),
        ],
    )
    overlays = renderer.render_frame(frame, ui)
    assert [o.label for o in overlays] == ["a (50.0%)", "b (60.0%)"]
    assert ui.readout == ["[x: 14, y: 36]", "[x: 104, y: 136]"]

    renderer.render_frame(CapturedFrame(image=encode_jpeg()), ui)
    assert ui.readout == []


def test_inverted_and_missing_boxes_do_not_raise(ui):
    renderer = OverlayRenderer(ui)
    renderer.init_surface("detectionsView")
    frame = CapturedFrame(
        image=encode_jpeg(),
        detections=[
            Detection("inverted", 0.5, 300, 300, 100, 100),
            Detection("empty", 0.1),
        ],
    )
    overlays = renderer.render_frame(frame)
    assert overlays[0].rect.width == -200
    assert overlays[1].rect.as_int() == (0, 0, 0, 0)


def test_stream_mode_keeps_fixed_size_and_aspect_fills(ui):
    renderer = OverlayRenderer(ui)
    renderer.init_surface("detectionsView", RenderMode.STREAM, size=(400, 400))
    image = np.full((600, 800, 3), 200, dtype=np.uint8)

    overlays = renderer.render_image(
        image, [Detection("cube", 0.9, 0, 0, 800, 600)], BoxConvention.ABSOLUTE
    )
    assert (renderer.surface.width, renderer.surface.height) == (400, 400)
    assert overlays[0].rect.as_int() == (-67, 0, 467, 400)
    # covered, not letterboxed
    pixels = renderer.snapshot()
    assert int(pixels[300, 50][0]) == 200
    assert int(pixels[200, 350][0]) == 200


def test_stream_mode_same_size_draws_one_to_one(ui):
    renderer = OverlayRenderer(ui)
    renderer.init_surface("detectionsView", RenderMode.STREAM, size=(64, 48))
    image = np.zeros((48, 64, 3), dtype=np.uint8)
    image[10, 20] = (1, 2, 3)
    renderer.render_image(image)
    assert tuple(int(c) for c in renderer.snapshot()[10, 20]) == (1, 2, 3)


def test_encode_jpeg_after_render(ui):
    renderer = OverlayRenderer(ui)
    renderer.init_surface("detectionsView")
    renderer.render_frame(cube_frame())
    jpg = renderer.encode_jpeg(quality=70)
    assert jpg[:2] == b"\xff\xd8"


def test_non_finite_boxes_are_skipped(ui, caplog):
    renderer = OverlayRenderer(ui)
    renderer.init_surface("detectionsView")
    frame = CapturedFrame(
        image=encode_jpeg(),
        detections=[
            Detection("nan", 0.5, float("nan"), 10, 50, 60),
            Detection("inf", 0.5, 10, 10, float("inf"), 60),
            Detection("cube", 0.9, 10, 40, 50, 80),
        ],
    )
    overlays = renderer.render_frame(frame, ui)
    assert [o.label for o in overlays] == ["cube (90.0%)"]
    assert ui.readout == ["[x: 14, y: 36]"]
    assert "non-finite box" in caplog.text

import asyncio
import io

import pytest
from PIL import Image

from conftest import FakeGemini, make_image
from fanai.core.errors import SynthesisError
from fanai.services.synthesis import BACKGROUND, SynthesisEngine, compose_side_by_side, scaled_width


def test_composite_geometry():
    user = make_image(400, 600, (255, 0, 0))
    celeb = make_image(300, 300, (0, 0, 255), fmt="JPEG")

    composite = Image.open(io.BytesIO(compose_side_by_side(user, celeb, target_height=800, gap=40)))

    # 400/600*800 = 533.33 -> 533; 300/300*800 = 800
    assert composite.format == "PNG"
    assert composite.size == (533 + 800 + 40, 800)
    assert composite.getpixel((10, 400))[:3] == (255, 0, 0)
    assert composite.getpixel((533 + 20, 400)) == BACKGROUND
    assert composite.getpixel((533 + 40 + 400, 400))[2] > 200


def test_scaled_width_floors():
    assert scaled_width((1000, 3000), 800) == 266
    assert scaled_width((1, 5000), 800) == 1


def test_synthesize_writes_output(tmp_path):
    user_path = tmp_path / "user.png"
    celeb_path = tmp_path / "celeb.jpg"
    user_path.write_bytes(make_image(300, 400))
    celeb_path.write_bytes(make_image(300, 300, fmt="JPEG"))
    output = tmp_path / "generated" / "gen_1.png"
    gemini = FakeGemini()

    engine = SynthesisEngine(gemini, target_height=200, gap=10)
    asyncio.run(engine.synthesize(str(user_path), str(celeb_path), "Jane Star at a premiere", str(output)))

    with Image.open(output) as image:
        assert image.size == (150 + 200 + 10, 200)
    assert gemini.described == ["Jane Star at a premiere"]


def test_synthesize_wraps_failures(tmp_path):
    engine = SynthesisEngine(FakeGemini())

    with pytest.raises(SynthesisError) as exc_info:
        asyncio.run(engine.synthesize(
            str(tmp_path / "missing.png"), str(tmp_path / "missing.jpg"), "prompt", str(tmp_path / "out.png")
        ))

    assert str(exc_info.value).startswith("Failed to generate celebrity photo:")
    assert isinstance(exc_info.value.cause, FileNotFoundError)

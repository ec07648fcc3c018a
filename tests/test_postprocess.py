import asyncio
import io

import numpy as np
from PIL import Image

from conftest import make_image
from fanai.services.postprocess import process_generated_image, trim, watermark


def bordered_image() -> bytes:
    image = Image.new("RGB", (200, 100), (255, 255, 255))
    image.paste((0, 0, 0), (50, 20, 150, 80))
    out = io.BytesIO()
    image.save(out, format="PNG")
    return out.getvalue()


def size_of(data: bytes):
    with Image.open(io.BytesIO(data)) as image:
        return image.size


def test_trim_removes_white_border():
    assert size_of(trim(bordered_image())) == (100, 60)


def test_trim_is_idempotent():
    once = trim(bordered_image())
    assert trim(once) == once


def test_trim_treats_near_white_as_background():
    image = Image.new("RGB", (120, 120), (250, 250, 250))
    image.paste((30, 30, 30), (10, 10, 110, 60))
    out = io.BytesIO()
    image.save(out, format="PNG")

    assert size_of(trim(out.getvalue(), threshold=10)) == (100, 50)


def test_trim_transparent_padding():
    image = Image.new("RGBA", (80, 80), (0, 0, 0, 0))
    image.paste((200, 0, 0, 255), (20, 30, 60, 50))
    out = io.BytesIO()
    image.save(out, format="PNG")

    assert size_of(trim(out.getvalue())) == (40, 20)


def test_trim_leaves_blank_and_full_images_unchanged():
    blank = make_image(50, 50, (255, 255, 255))
    full = make_image(50, 50, (0, 0, 0))

    assert trim(blank) == blank
    assert trim(full) == full


def test_trim_fails_open_on_undecodable_bytes():
    assert trim(b"not an image") == b"not an image"


def test_watermark_keeps_dimensions_and_marks_corner():
    original = make_image(400, 300, (100, 100, 100))
    marked = watermark(original, "FanAI")

    assert size_of(marked) == (400, 300)
    before = np.asarray(Image.open(io.BytesIO(original)).convert("RGB"), dtype=np.int16)
    after = np.asarray(Image.open(io.BytesIO(marked)).convert("RGB"), dtype=np.int16)
    assert np.abs(after[200:, 250:] - before[200:, 250:]).max() > 0
    assert np.array_equal(after[:100, :100], before[:100, :100])



def test_watermark_applied_twice_keeps_dimensions():
    original = make_image(400, 300, (100, 100, 100))
    once = watermark(original, "FanAI")
    twice = watermark(once, "FanAI")

    assert size_of(twice) == size_of(original) == (400, 300)
    first = np.asarray(Image.open(io.BytesIO(once)).convert("RGB"), dtype=np.int16)
    second = np.asarray(Image.open(io.BytesIO(twice)).convert("RGB"), dtype=np.int16)
    assert not np.array_equal(first, second)

def test_process_generated_image(tmp_path):
    generated = tmp_path / "generated.png"
    generated.write_bytes(bordered_image())
    output = tmp_path / "processed" / "gen_1.png"

    asyncio.run(process_generated_image(str(generated), str(output)))

    assert size_of(output.read_bytes()) == (100, 60)

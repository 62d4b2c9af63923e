"""Deterministic renderer for the fixed set of ten 100x100 test images.

Every image is fully opaque (A=255). Randomness comes from a seeded LCG so a
given name always produces the same picture on the same Pillow build; any
run-to-run drift is what the rest of the package is there to measure.
Glyphs are ASCII so Pillow's built-in font can draw them everywhere.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional

from PIL import Image, ImageDraw, ImageFilter, ImageFont

from .pixels import OPAQUE_WHITE, RgbaFrame

CANVAS_WIDTH = 100
CANVAS_HEIGHT = 100
INK = (20, 20, 20, 255)

IMAGE_TYPES = (
    "faces",
    "persons",
    "travel",
    "flags",
    "hands",
    "randomFont",
    "moire",
    "a-randomString",
    "gradQuantSteps",
    "shadowBlurProbe",
)

GLYPH_SETS = {
    "faces": [":)", ":D", ";)", ":P", ":O", ":|", "B)", "xD", ":/", ":S", "^^", "-_-"],
    "persons": ["A", "B", "Q", "R", "W", "M", "K", "X", "Y", "Z", "H", "N"],
    "travel": ["#", "%", "&", "@", "$", "^", "*", "~", "+", "=", "?", "!"],
    "flags": ["US", "JP", "DE", "FR", "GB", "IN", "KH", "PH", "ZA", "KR", "CA", "BR"],
    "hands": ["<", ">", "/", "\\", "|", "{", "}", "[", "]", "(", ")", "o"],
}

FONT_LINES = (
    (15, "A sum L O E B"),
    (30, "ss psi != ~= +-"),
    (46, "$ L c P 1 2 3 4 5"),
    (64, "-> ^ v () o @"),
    (79, "{ } [ ] ( ) < >"),
    (95, "e n u a o ae"),
)


def lcg(seed: int = 1) -> Callable[[], float]:
    """Linear congruential generator yielding floats in [0, 1)."""
    state = seed & 0xFFFFFFFF

    def _next() -> float:
        nonlocal state
        state = (state * 1664525 + 1013904223) & 0xFFFFFFFF
        return state / 4294967296

    return _next


def _blank() -> Image.Image:
    return Image.new("RGBA", (CANVAS_WIDTH, CANVAS_HEIGHT), OPAQUE_WHITE)


def _finalize_opaque(image: Image.Image) -> Image.Image:
    floor = _blank()
    floor.alpha_composite(image)
    return floor


def draw_glyph_grid(category: str, name: str) -> Image.Image:
    image = _blank()
    draw = ImageDraw.Draw(image)
    font = ImageFont.load_default()
    glyphs = GLYPH_SETS.get(category) or ["."]
    random = lcg(len(name))
    grid = 6
    cell = CANVAS_WIDTH / grid
    idx = 0
    for row in range(grid):
        for col in range(grid):
            glyph = glyphs[idx % len(glyphs)]
            idx += 1
            x = col * cell + 2 + random() * 4
            y = row * cell + random() * 4
            draw.text((x, y), glyph, fill=INK, font=font)
    return _finalize_opaque(image)


def draw_font_lines(name: str) -> Image.Image:
    image = _blank()
    draw = ImageDraw.Draw(image)
    font = ImageFont.load_default()
    for baseline, text in FONT_LINES:
        draw.text((6, baseline - 11), text, fill=INK, font=font)
    return _finalize_opaque(image)


def draw_moire(name: str) -> Image.Image:
    image = _blank()
    draw = ImageDraw.Draw(image)
    for y in range(0, CANVAS_HEIGHT, 4):
        draw.line([(0, y), (CANVAS_WIDTH, y)], fill=(0, 0, 0, 255), width=1)
    for x in range(0, CANVAS_WIDTH, 5):
        draw.line([(x, 0), (x, CANVAS_HEIGHT)], fill=(85, 85, 85, 255), width=1)
    return _finalize_opaque(image)


def _gradient_level(t: float) -> int:
    # stops: 0 -> #000000, 0.6 -> #777777, 1 -> #ffffff
    if t <= 0.6:
        return round(0x77 * (t / 0.6))
    return round(0x77 + (0xFF - 0x77) * ((t - 0.6) / 0.4))


def draw_gradient_steps(name: str) -> Image.Image:
    image = _blank()
    pixels = image.load()
    span = CANVAS_WIDTH * CANVAS_WIDTH + CANVAS_HEIGHT * CANVAS_HEIGHT
    for y in range(CANVAS_HEIGHT):
        for x in range(CANVAS_WIDTH):
            t = min(1.0, (x * CANVAS_WIDTH + y * CANVAS_HEIGHT) / span)
            level = _gradient_level(t)
            pixels[x, y] = (level, level, level, 255)
    return _finalize_opaque(image)


def draw_shadow_probe(name: str) -> Image.Image:
    image = _blank()
    random = lcg(len(name))
    for _ in range(6):
        blur = 2 + 16 * random()
        x = 10 + random() * (CANVAS_WIDTH - 20)
        y = 10 + random() * (CANVAS_HEIGHT - 20)
        size = 6 + random() * 24
        pick = random()
        shape = "circle" if pick < 0.33 else ("rect" if random() < 0.5 else "diamond")

        layer = Image.new("RGBA", image.size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(layer)
        if shape == "circle":
            draw.ellipse([x - size, y - size, x + size, y + size], fill=(0, 0, 0, 255))
        elif shape == "rect":
            draw.rectangle([x - size, y - size, x + size, y + size], fill=(0, 0, 0, 255))
        else:
            draw.polygon([(x, y - size), (x + size, y), (x, y + size), (x - size, y)], fill=(0, 0, 0, 255))
        shadow = layer.filter(ImageFilter.GaussianBlur(radius=blur / 2))
        image.alpha_composite(shadow)
        image.alpha_composite(layer)
    return _finalize_opaque(image)


def draw_random_string(name: str) -> Image.Image:
    image = _blank()
    draw = ImageDraw.Draw(image)
    font = ImageFont.load_default()
    random = lcg(12345)
    for i in range(5):
        y = 16 + i * 18
        line = "".join(chr(0x21 + int(random() * 60)) for _ in range(18))
        draw.text((4, y - 11), line, fill=(97, 53, 220, 255), font=font)
    return _finalize_opaque(image)


def render_one(image_type: str, name: str) -> Optional[Image.Image]:
    if image_type in GLYPH_SETS:
        return draw_glyph_grid(image_type, name)
    renderer = {
        "randomFont": draw_font_lines,
        "moire": draw_moire,
        "a-randomString": draw_random_string,
        "gradQuantSteps": draw_gradient_steps,
        "shadowBlurProbe": draw_shadow_probe,
    }.get(image_type)
    return renderer(name) if renderer else None


def image_name(session_id: int, image_type: str, position: int) -> str:
    return f"S{session_id}_{image_type}_{position}"


def render_all(session_id: int = 1) -> Dict[str, RgbaFrame]:
    frames: Dict[str, RgbaFrame] = {}
    for position, image_type in enumerate(IMAGE_TYPES, start=1):
        name = image_name(session_id, image_type, position)
        image = render_one(image_type, name)
        if image is not None:
            frames[name] = RgbaFrame.from_image(image)
    return frames

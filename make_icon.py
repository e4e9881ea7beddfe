"""
Draw the Hydrate & Stretch water-drop icon in a Windows 3.1 palette.
Used for the tray icon at runtime; run standalone to write icon.ico/icon.png.
"""
from PIL import Image, ImageDraw
import math


# Windows 3.1 16-color palette
BLACK = (0, 0, 0)
WHITE = (255, 255, 255)
BLUE = (0, 0, 128)
CYAN = (0, 128, 128)
LIGHT_CYAN = (128, 192, 192)
GRAY = (128, 128, 128)
SILVER = (192, 192, 192)
DARK_GRAY = (64, 64, 64)


def crosshatch_in_circle(draw, cx, cy, r, line_color, spacing, line_w=1):
    """Draw diagonal crosshatch lines clipped to a circle."""
    r_sq = r * r
    for sign in (1, -1):
        for offset in range(-2 * r, 2 * r + 1, spacing):
            pts = []
            for x in range(cx - r, cx + r + 1):
                y = sign * (x - cx) + offset + cy
                if (x - cx) ** 2 + (y - cy) ** 2 <= r_sq:
                    pts.append((x, y))
            if len(pts) >= 2:
                draw.line([pts[0], pts[-1]], fill=line_color, width=line_w)


def drop_outline(cx, cy, r, tip_y, steps=48):
    """Polygon points for a drop: circle of radius r at (cx, cy) with a point at tip_y."""
    # Tangent points where the straight sides meet the circle
    d = cy - tip_y
    a = math.asin(min(1.0, r / d))
    pts = [(cx, tip_y)]
    start = -math.pi / 2 + (math.pi / 2 - a)
    for i in range(steps + 1):
        t = start + (math.pi + 2 * a) * i / steps
        pts.append((cx + r * math.cos(t), cy + r * math.sin(t)))
    return pts


def create_drop_icon(size=64, dimmed=False):
    """Create the drop icon; *dimmed* greys it out when every reminder is off."""
    img = Image.new('RGBA', (size, size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)
    s = size / 64  # scale factor (designed at 64px base)
    w = max(1, int(s))

    body, shade, hi = (GRAY, DARK_GRAY, SILVER) if dimmed else (CYAN, BLUE, LIGHT_CYAN)

    cx, cy = int(32 * s), int(40 * s)
    r = int(18 * s)
    tip = int(4 * s)

    # Shadow, outline, body
    draw.polygon([(x + w, y + w) for x, y in drop_outline(cx, cy, r + w, tip)], fill=DARK_GRAY)
    draw.polygon(drop_outline(cx, cy, r + w, tip), fill=BLACK)
    draw.polygon(drop_outline(cx, cy, r, tip + 2 * w), fill=body)

    # ── Crosshatch shading on the lower half ──
    crosshatch_in_circle(draw, cx, cy, r - 2 * w, shade,
                         max(3, int(4 * s)), max(1, int(0.8 * s)))

    # 3D bevel: highlight on upper-left, shadow on lower-right
    bevel = max(1, int(2 * s))
    for angle_deg in range(160, 250):
        angle = math.radians(angle_deg)
        for offset in range(1, bevel + 1):
            draw.point((int(cx + (r - offset) * math.cos(angle)),
                        int(cy + (r - offset) * math.sin(angle))), fill=hi)
    for angle_deg in range(10, 100):
        angle = math.radians(angle_deg)
        for offset in range(1, bevel + 1):
            draw.point((int(cx + (r - offset) * math.cos(angle)),
                        int(cy + (r - offset) * math.sin(angle))), fill=shade)

    # Glint
    gr = max(2, int(4 * s))
    gx, gy = cx - int(7 * s), cy - int(6 * s)
    draw.ellipse([gx - gr, gy - gr, gx + gr, gy + gr], fill=WHITE, outline=BLACK, width=w)

    return img


def generate_icon():
    """Generate icon.ico and icon.png files."""
    sizes = [16, 32, 48, 64, 128, 256]
    images = [create_drop_icon(s) for s in sizes]
    # ICO: save largest first, append smaller (PIL requires this order)
    images[-1].save('icon.ico', format='ICO', append_images=images[:-1])
    images[-1].save('icon.png', format='PNG')


if __name__ == "__main__":
    generate_icon()
    print("Generated icon.ico and icon.png")

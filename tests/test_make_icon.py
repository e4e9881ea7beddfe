from __future__ import annotations

import os
import tempfile
import unittest

from make_icon import create_drop_icon, generate_icon


class DropIconTests(unittest.TestCase):
    def test_icon_sizes(self) -> None:
        for size in (16, 64, 256):
            img = create_drop_icon(size)
            self.assertEqual(img.size, (size, size))
            self.assertEqual(img.mode, "RGBA")

    def test_dimmed_icon_differs(self) -> None:
        self.assertNotEqual(create_drop_icon(64).tobytes(), create_drop_icon(64, dimmed=True).tobytes())

    def test_corners_stay_transparent(self) -> None:
        img = create_drop_icon(64)
        self.assertEqual(img.getpixel((0, 0))[3], 0)
        self.assertNotEqual(img.getpixel((32, 40))[3], 0)

    def test_generate_icon_files(self) -> None:
        cwd = os.getcwd()
        with tempfile.TemporaryDirectory() as tmp:
            os.chdir(tmp)
            try:
                generate_icon()
                self.assertTrue(os.path.exists("icon.ico"))
                self.assertTrue(os.path.exists("icon.png"))
            finally:
                os.chdir(cwd)


if __name__ == "__main__":
    unittest.main()

"""Help-panel rendering tests."""

from __future__ import annotations

import unittest

from lazydu.render import content_rows_for
from lazydu.render.help import help_panel_lines, help_panel_row_count


class RenderHelpPanelTests(unittest.TestCase):
    def test_help_panel_lists_sort_and_navigation_keys(self) -> None:
        text = "\n".join(help_panel_lines())
        self.assertIn("\033[38;5;229mRight/Enter/l\033[0m", text)
        self.assertIn("\033[38;5;229mS\033[0m apparent size", text)
        self.assertIn("kernel fs", text)

    def test_row_count_respects_available_height(self) -> None:
        self.assertEqual(help_panel_row_count(40, False), 0)
        self.assertEqual(help_panel_row_count(1, True), 0)
        self.assertEqual(help_panel_row_count(4, True), 3)
        self.assertEqual(help_panel_row_count(40, True), len(help_panel_lines()))

    def test_help_panel_shrinks_listing_rows(self) -> None:
        self.assertEqual(content_rows_for(24, False), 21)
        self.assertEqual(content_rows_for(24, True), 21 - len(help_panel_lines()))


if __name__ == "__main__":
    unittest.main()

"""Tests for top-level package lazy exports."""

from __future__ import annotations

import unittest

import melchat


class PackageExportTests(unittest.TestCase):
    """Ensure __getattr__ and exported symbols behave as expected."""

    def test_lazy_exports_resolve_known_symbols(self) -> None:
        for name in melchat.__all__:
            with self.subTest(name=name):
                self.assertIsNotNone(getattr(melchat, name))
        self.assertTrue(callable(melchat.load_config))
        self.assertEqual(melchat.ConversationOrchestrator.__name__, "ConversationOrchestrator")

    def test_unknown_symbol_raises_attribute_error(self) -> None:
        with self.assertRaises(AttributeError):
            getattr(melchat, "THIS_DOES_NOT_EXIST")


if __name__ == "__main__":
    unittest.main()

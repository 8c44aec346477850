from __future__ import annotations

import unittest

from pydantic import ValidationError

from fakes import make_settings


class SettingsTest(unittest.TestCase):
    def test_defaults_are_valid(self) -> None:
        cfg = make_settings()
        self.assertEqual(cfg.chunk_size, 2000)
        self.assertEqual(cfg.max_messages, 20)
        self.assertEqual(cfg.max_sessions, 1024)

    def test_bad_limits_fail_fast(self) -> None:
        for overrides in ({"chunk_size": 0}, {"chunk_size": -1}, {"chunk_overlap": -5}, {"max_messages": 0}, {"max_sessions": 0}):
            with self.assertRaises(ValidationError, msg=str(overrides)):
                make_settings(**overrides)


if __name__ == "__main__":
    unittest.main()

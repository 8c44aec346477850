from __future__ import annotations

import unittest

from logwhisperer.schemas.models import RawSuggestion
from logwhisperer.utils.safety import (
    classify,
    filter_suggestions,
    is_allowlisted,
    normalize_risk,
    parse_allowlist,
)


class ClassifyTest(unittest.TestCase):
    def test_destructive_term_overrides_declared_low(self) -> None:
        self.assertEqual(classify("iptables --flush", ["iptables"], "low"), "high")

    def test_allowlisted_safe_command_keeps_declared_risk(self) -> None:
        self.assertEqual(classify("ip route show", ["ip"], "low"), "low")

    def test_not_allowlisted_escalates_low_to_med(self) -> None:
        self.assertEqual(classify("cat /etc/passwd", ["ip", "ufw"], "low"), "med")

    def test_absence_from_allowlist_never_reaches_high(self) -> None:
        self.assertEqual(classify("docker restart web", ["ip"], "med"), "med")
        self.assertEqual(classify("docker ps", [], None), "med")

    def test_undeclared_defaults_to_med(self) -> None:
        self.assertEqual(classify("ip addr", ["ip"]), "med")

    def test_declared_high_is_never_downgraded(self) -> None:
        self.assertEqual(classify("ip route show", ["ip"], "high"), "high")

    def test_privilege_prefix_is_ignored(self) -> None:
        self.assertEqual(classify("sudo ufw allow 5353/udp", ["ufw"], "low"), "low")
        self.assertEqual(classify("  sudo rm -rf /var/lib/app", ["rm"], "low"), "high")

    def test_destructive_terms_case_insensitive(self) -> None:
        for cmd in ["UFW DISABLE", "systemctl Stop nginx", "shutdown -h now", "ufw delete 3", "reboot"]:
            self.assertEqual(classify(cmd, ["ufw", "systemctl", "shutdown", "reboot"], "low"), "high", cmd)


class AllowlistTest(unittest.TestCase):
    def test_parse(self) -> None:
        self.assertEqual(parse_allowlist("ip, ufw"), ["ip", "ufw"])
        self.assertEqual(parse_allowlist(" , ip,,"), ["ip"])
        self.assertEqual(parse_allowlist(""), [])
        self.assertEqual(parse_allowlist(None), [])

    def test_matching(self) -> None:
        allow = ["ip", "ufw"]
        self.assertTrue(is_allowlisted("ip route show", allow))
        self.assertTrue(is_allowlisted("sudo UFW status", allow))
        self.assertFalse(is_allowlisted("cat /etc/passwd", allow))
        self.assertFalse(is_allowlisted("", allow))
        self.assertFalse(is_allowlisted("ip route", []))

    def test_normalize_risk(self) -> None:
        self.assertEqual(normalize_risk("medium"), "med")
        self.assertEqual(normalize_risk("HIGH"), "high")
        self.assertEqual(normalize_risk("critical"), "med")
        self.assertEqual(normalize_risk(None), "med")


class FilterSuggestionsTest(unittest.TestCase):
    def test_drops_unlisted_and_caps(self) -> None:
        raw = [
            RawSuggestion(cmd="cat /etc/passwd", why="look"),
            RawSuggestion(cmd="sudo ufw allow 5353/udp", why="Allow mDNS", risk="low"),
            RawSuggestion(cmd="sudo iptables --flush", why="Reset firewall"),
            RawSuggestion(cmd="ip route show", why="routes", risk="low"),
            RawSuggestion(cmd="ip addr", why="addresses", risk="low"),
        ]
        out = filter_suggestions(raw, ["iptables", "ufw", "ip"], limit=3)
        self.assertEqual([s.cmd for s in out], ["sudo ufw allow 5353/udp", "sudo iptables --flush", "ip route show"])
        self.assertEqual([s.risk for s in out], ["low", "high", "low"])

    def test_empty_allowlist_drops_everything(self) -> None:
        raw = [RawSuggestion(cmd="ip route show", why="routes", risk="low")]
        self.assertEqual(filter_suggestions(raw, []), [])


if __name__ == "__main__":
    unittest.main()

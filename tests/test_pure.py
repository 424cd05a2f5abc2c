import os
import sys
import unittest
from datetime import date, datetime, timedelta

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
src_path = os.path.join(ROOT, "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from db.models import Offer  # noqa: E402
from utils.pure import (  # noqa: E402
    day_span,
    fmt_money,
    fmt_when,
    generate_markdown_table,
    parse_day,
)


class PureTestCase(unittest.TestCase):
    def test_markdown_table(self):
        md = generate_markdown_table(["A", "B"], [[1, "x|y"]], ["l", "r"])
        self.assertEqual(md, "| A | B |\n| :--- | ---: |\n| 1 | x\\|y |")
        self.assertEqual(generate_markdown_table(["A"], []), "")
        with self.assertRaises(ValueError):
            generate_markdown_table(["A", "B"], [[1, 2]], ["l"])

    def test_formatting(self):
        self.assertEqual(fmt_money(1234.5), "$1,234.50")
        self.assertEqual(fmt_money(None), "-")
        self.assertEqual(fmt_when(None), "N/A")
        self.assertEqual(fmt_when(date(2025, 1, 2)), "02/01/2025")
        self.assertEqual(fmt_when(datetime(2025, 1, 2, 15, 4)), "02/01/2025, 03:04 PM")

    def test_parse_day(self):
        self.assertEqual(parse_day(" 2025-03-01 "), date(2025, 3, 1))
        self.assertIsNone(parse_day("01/03/2025"))
        self.assertIsNone(parse_day(""))

    def test_day_span_covers_the_whole_last_day(self):
        start, end = day_span(date(2025, 3, 1), date(2025, 3, 2))
        self.assertEqual(start, datetime(2025, 3, 1, 0, 0, 0))
        self.assertEqual(end, datetime(2025, 3, 2, 23, 59, 59, 999999))

        offer = Offer("o1", "1", 10.0, start, end, "Weekend deal")
        self.assertEqual(offer.status(datetime(2025, 3, 2, 23, 59, 59, 500000)), "Active")
        self.assertEqual(offer.status(end + timedelta(microseconds=1)), "Expired")


if __name__ == "__main__":
    unittest.main()

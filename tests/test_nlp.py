import unittest
from fieldsync.formatters import format_date, format_npk, format_numeric, format_phone
from fieldsync.models import Language, create_empty_record
from fieldsync.nlp import apply_speech_result, parse_speech_to_fields

class TestSpeechParser(unittest.TestCase):
    def test_english_fields(self):
        result = parse_speech_to_fields("Village is Rampur, moisture is 14%", "en")
        self.assertEqual(result.fields["village"], "rampur")
        self.assertEqual(result.fields["moisture_percent"], "14")

    def test_zone_fields(self):
        result = parse_speech_to_fields("plant height is 120 cm. color: dark green", "en")
        self.assertEqual(result.zone_updates["plant_height"], "120 cm")
        self.assertEqual(result.zone_updates["plant_color"], "dark green")

    def test_hindi(self):
        result = parse_speech_to_fields("गांव रामपुर", Language.HI)
        self.assertEqual(result.fields["village"], "रामपुर")

    def test_unknown_language_uses_english_table(self):
        result = parse_speech_to_fields("block is north", "fr")
        self.assertEqual(result.fields["block"], "north")

    def test_nothing_recognised(self):
        self.assertTrue(parse_speech_to_fields("hello there", "en").empty)

    def test_apply_to_record_and_zone(self):
        record = create_empty_record()
        result = parse_speech_to_fields("district is Puri, plant height is 2 feet", "en")
        apply_speech_result(record, result, zone_id="B")
        self.assertEqual(record.district, "puri")
        self.assertEqual(record.zone("B").plant_height, "2 feet")
        self.assertIsNone(record.zone("A").plant_height)

class TestFormatters(unittest.TestCase):
    def test_phone(self):
        self.assertEqual(format_phone("+91 98765-43210 ext"), "9198765432")

    def test_date(self):
        self.assertEqual(format_date("2024"), "2024")
        self.assertEqual(format_date("20241"), "2024-1")
        self.assertEqual(format_date("20241105"), "2024-11-05")

    def test_npk(self):
        self.assertEqual(format_npk("102010"), "10:20:10")
        self.assertEqual(format_npk("102"), "10:2")

    def test_numeric(self):
        self.assertEqual(format_numeric("12.345"), "12.34")
        self.assertEqual(format_numeric("1.2.3kg", precision=3), "1.23")
        self.assertEqual(format_numeric("abc42"), "42")

if __name__ == '__main__':
    unittest.main()

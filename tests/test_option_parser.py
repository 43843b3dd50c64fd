"""
Tests for spoken option number extraction.
"""

import unittest

from cosmo_nav.interaction.option_parser import (
    extract_option, has_selection_keyword, is_simple_selection
)


class TestExtractOption(unittest.TestCase):
    """Test option index extraction."""

    def test_digit(self):
        """Test a literal digit."""
        self.assertEqual(extract_option("option 2").index, 1)
        self.assertEqual(extract_option("number 10").index, 9)

    def test_number_words(self):
        """Test number words and ordinals."""
        self.assertEqual(extract_option("two").index, 1)
        self.assertEqual(extract_option("choose the first").index, 0)
        self.assertEqual(extract_option("the ninth please").index, 8)

    def test_ordinal_suffix(self):
        """Test 1st..10th tokens."""
        self.assertEqual(extract_option("the 4th").index, 3)

    def test_trailing_one_is_pronoun(self):
        """Test that 'the second one' means option 2."""
        selection = extract_option("the second one")
        self.assertEqual(selection.index, 1)
        self.assertFalse(selection.ambiguous)

    def test_digit_wins_over_words(self):
        """Test that a digit takes precedence over number words."""
        self.assertEqual(extract_option("option 3 the first").index, 2)

    def test_ambiguous_digits(self):
        """Test two different digits."""
        selection = extract_option("1 or 2")
        self.assertTrue(selection.ambiguous)
        self.assertIsNone(selection.index)
        self.assertTrue(selection.found)

    def test_ambiguous_words(self):
        """Test two different number words."""
        self.assertTrue(extract_option("two or three").ambiguous)

    def test_repeated_number_not_ambiguous(self):
        """Test the same number said twice."""
        selection = extract_option("option 2, yes 2")
        self.assertFalse(selection.ambiguous)
        self.assertEqual(selection.index, 1)

    def test_zero_is_out_of_range_index(self):
        """Test that 'option 0' yields -1 for bounds checking."""
        self.assertEqual(extract_option("option 0").index, -1)

    def test_no_number(self):
        """Test utterances without a number."""
        self.assertFalse(extract_option("find coffee").found)
        self.assertFalse(extract_option("").found)

    def test_ambiguous_has_no_index(self):
        """Test that two different numbers give no index."""
        selection = extract_option("1 or 2")
        self.assertTrue(selection.ambiguous)
        self.assertIsNone(selection.index)


class TestSelectionHints(unittest.TestCase):
    """Test selection keyword and simple selection checks."""

    def test_simple_selection(self):
        """Test bare number utterances."""
        self.assertTrue(is_simple_selection("2"))
        self.assertTrue(is_simple_selection("2."))
        self.assertTrue(is_simple_selection("two"))
        self.assertTrue(is_simple_selection("Second"))
        self.assertFalse(is_simple_selection("take two"))
        self.assertFalse(is_simple_selection(""))

    def test_selection_keyword(self):
        """Test whole-word selection keywords."""
        self.assertTrue(has_selection_keyword("option 3"))
        self.assertTrue(has_selection_keyword("pick three"))
        self.assertTrue(has_selection_keyword("go to number two"))
        self.assertFalse(has_selection_keyword("optional stop"))
        self.assertFalse(has_selection_keyword(""))


if __name__ == '__main__':
    unittest.main()

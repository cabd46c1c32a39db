"""
Tests for name sanitizing.
"""

import pytest

from notex.errors import InvalidNameError
from notex.services.sanitizer import MAX_NAME_LENGTH, sanitize_name


class TestSanitizeName:
    """Tests for sanitize_name"""

    def test_keeps_allowed_characters(self):
        """Letters, digits, space, hyphen, underscore and period survive"""
        assert sanitize_name("Work Notes_2024-v1.2") == "Work Notes_2024-v1.2"

    def test_strips_disallowed_characters(self):
        """Punctuation outside the allow-list is removed"""
        assert sanitize_name("To:do*list?") == "Todolist"

    def test_trims_whitespace(self):
        """Surrounding whitespace is trimmed"""
        assert sanitize_name("   Projects  ") == "Projects"

    def test_traversal_name_is_flattened(self):
        """A traversal attempt cannot produce separators or '..' segments"""
        name = sanitize_name("../../etc")

        assert name
        assert "/" not in name
        assert "\\" not in name
        assert ".." not in name
        assert name == "etc"

    def test_backslashes_removed(self):
        """Windows separators are stripped too"""
        assert sanitize_name("a\\b\\c") == "abc"

    def test_all_disallowed_yields_placeholder(self):
        """Nothing usable left falls back to the placeholder"""
        assert sanitize_name("/\\:*?<>|") == "Untitled"

    def test_empty_and_none_yield_placeholder(self):
        """Empty input falls back to the placeholder"""
        assert sanitize_name("") == "Untitled"
        assert sanitize_name(None) == "Untitled"

    def test_custom_placeholder(self):
        """Folders use their own placeholder"""
        assert sanitize_name("???", placeholder="New Folder") == "New Folder"

    def test_dot_only_names_fall_back(self):
        """'.' and '..' are never returned as names"""
        assert sanitize_name(".") == "Untitled"
        assert sanitize_name("..") == "Untitled"

    def test_leading_dot_removed(self):
        """Names never start with '.' (hidden entries are not scanned)"""
        assert sanitize_name(".hidden") == "hidden"

    def test_unicode_letters_kept(self):
        """Non-ASCII letters are letters too"""
        assert sanitize_name("Café Notizen") == "Café Notizen"

    def test_long_names_truncated(self):
        """Names are capped at a safe length"""
        assert len(sanitize_name("a" * 500)) == MAX_NAME_LENGTH

    def test_unusable_placeholder_raises(self):
        """InvalidNameError when even the placeholder is unusable"""
        with pytest.raises(InvalidNameError):
            sanitize_name("///", placeholder="///")

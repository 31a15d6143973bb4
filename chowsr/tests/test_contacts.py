from __future__ import annotations

from chowsr.groups.contacts import coerce_contact_type, normalize_contact


def test_phone_keeps_digits_only():
    assert normalize_contact(" +1 (555) 010-9999 ", "phone") == "15550109999"


def test_email_is_trimmed_and_lowercased():
    assert normalize_contact("  Ana@Example.COM ", "email") == "ana@example.com"


def test_blank_contact_normalizes_to_empty():
    assert normalize_contact("   ", "email") == ""
    assert normalize_contact("", "phone") == ""


def test_phone_without_digits_normalizes_to_empty():
    assert normalize_contact("call me", "phone") == ""


def test_unknown_type_is_treated_as_email():
    assert coerce_contact_type("phone") == "phone"
    assert coerce_contact_type("email") == "email"
    assert coerce_contact_type("fax") == "email"
    assert coerce_contact_type(None) == "email"

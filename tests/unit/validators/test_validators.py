from __future__ import annotations

import pytest

from imobipro.models.enums import LeadSource, resolve_lead_source
from imobipro.utils.validators import (
    is_valid_email,
    is_valid_phone,
    normalize_phone,
    normalize_tag,
    normalize_tags,
    sanitize_text,
)


def test_sanitize_text_strips_null_and_trims():
    assert sanitize_text("  hello\x00world  ") == "helloworld"
    assert sanitize_text(None) == ""
    assert sanitize_text("abcdef", max_len=3) == "abc"


def test_phone_formats_collapse_to_the_same_value():
    expected = "+5511999990000"
    assert normalize_phone("+55 (11) 99999-0000") == expected
    assert normalize_phone("5511999990000") == expected
    assert normalize_phone("11 99999-0000") == expected
    assert normalize_phone("   ") is None
    assert is_valid_phone("11 99999-0000") is True
    assert is_valid_phone("1234") is False


def test_email_validation():
    assert is_valid_email("maria@example.com.br") is True
    assert is_valid_email("maria@") is False
    assert is_valid_email(None) is False


def test_tags_are_ascii_upper_and_unique():
    assert normalize_tag("São Paulo") == "SAO_PAULO"
    assert normalize_tags(["apartamento", "APARTAMENTO", " Vila  Mariana "]) == ["APARTAMENTO", "VILA_MARIANA"]


def test_lead_source_aliases_resolve():
    assert resolve_lead_source("indicação") == LeadSource.REFERRAL
    assert resolve_lead_source("site") == LeadSource.WEBSITE
    assert resolve_lead_source("WHATSAPP") == LeadSource.WHATSAPP
    assert resolve_lead_source("") is None
    with pytest.raises(ValueError):
        resolve_lead_source("carrier pigeon")
